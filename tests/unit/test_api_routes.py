"""HTTP-level tests: routing, auth rules, error envelope.

Services are swapped for ones backed by the in-memory store and the DB
session dependency is overridden, so no database is needed.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

import src.rs_ledger.api.courses_router as courses_api
import src.rs_ledger.api.credits_router as credits_api
import src.rs_members.api.router as members_api
import src.rs_payments.api.router as payments_api
from src.main import app
from src.rs_common.database import get_db_session
from src.rs_gateway.middleware.request_log import resolve_request_id
from src.rs_ledger.application.service import LedgerApplicationService
from src.rs_members.application.export import MemberExportService
from src.rs_payments.application.service import PaymentApplicationService
from src.rs_payments.infrastructure.webhook_signature import compute_signature
from tests.unit.fakes import (
    FakeEnrollmentRepository,
    FakeGateway,
    FakeLedgerRepository,
    FakePaymentRepository,
    FakeProductRepository,
    FakeSession,
    FakeStore,
)


@pytest.fixture
def store(monkeypatch) -> FakeStore:
    store = FakeStore()
    store.add_course("c-1", capacity=1, name="Yoga")
    store.add_member("m-1", "Ana", credits=2)
    store.add_member("m-2", "Bo", credits=2)
    store.add_product("p-10", credits=10, price_cents=9000)

    ledger = LedgerApplicationService(
        ledger_repo=FakeLedgerRepository(store),
        enrollment_repo=FakeEnrollmentRepository(store),
        product_repo=FakeProductRepository(store),
    )
    payments = PaymentApplicationService(
        repo=FakePaymentRepository(store), gateway=FakeGateway(), ledger_service=ledger
    )
    monkeypatch.setattr(courses_api, "_service", ledger)
    monkeypatch.setattr(credits_api, "_service", ledger)
    monkeypatch.setattr(payments_api, "_service", payments)
    app.dependency_overrides[get_db_session] = lambda: FakeSession(store)
    yield store
    app.dependency_overrides.clear()


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member(token_factory) -> dict[str, str]:
    return _auth(token_factory("m-1"))


@pytest.fixture
def admin(token_factory) -> dict[str, str]:
    return _auth(token_factory("staff-1", admin=True))


async def test_health(client) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


class TestRequestId:
    async def test_inbound_id_is_echoed(self, client) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "edge-7f3a9c21"})
        assert resp.headers["X-Request-ID"] == "edge-7f3a9c21"

    async def test_malformed_inbound_id_is_replaced(self, client) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "bad id!"})
        assert resp.headers["X-Request-ID"].startswith("req_")

    async def test_envelope_carries_header_id(self, client, store, member) -> None:
        resp = await client.get("/api/v1/credits/balance/m-1", headers=member)
        assert resp.json()["request_id"] == resp.headers["X-Request-ID"]


def test_resolve_request_id() -> None:
    assert resolve_request_id("abcdefgh") == "abcdefgh"
    assert resolve_request_id("short").startswith("req_")
    assert resolve_request_id(None).startswith("req_")


class TestCourses:
    async def test_roster_requires_token(self, client, store) -> None:
        resp = await client.get("/api/v1/courses/c-1/roster")
        assert resp.status_code == 401

    async def test_roster_admin_only(self, client, store, member) -> None:
        resp = await client.get("/api/v1/courses/c-1/roster", headers=member)
        assert resp.status_code == 403
        assert resp.json()["reason"] == "forbidden"

    async def test_member_enrolls_self(self, client, store, member) -> None:
        resp = await client.post(
            "/api/v1/courses/c-1/enroll", json={"member_id": "m-1"}, headers=member
        )
        body = resp.json()
        assert resp.status_code == 200
        assert body["code"] == 0
        assert body["data"]["balance"] == 1
        assert body["data"]["roster"][0]["name"] == "Ana"
        assert body["request_id"] == resp.headers["X-Request-ID"]

    async def test_full_course_is_conflict(self, client, store, member, token_factory) -> None:
        await client.post("/api/v1/courses/c-1/enroll", json={"member_id": "m-1"}, headers=member)
        resp = await client.post(
            "/api/v1/courses/c-1/enroll",
            json={"member_id": "m-2"},
            headers=_auth(token_factory("m-2")),
        )
        assert resp.status_code == 409
        assert resp.json()["reason"] == "course_full"
        assert store.balance("m-2") == 2

    async def test_member_cannot_enroll_someone_else(self, client, store, member) -> None:
        resp = await client.post(
            "/api/v1/courses/c-1/enroll", json={"member_id": "m-2"}, headers=member
        )
        assert resp.status_code == 403

    async def test_member_cannot_waive_credits(self, client, store, member) -> None:
        resp = await client.post(
            "/api/v1/courses/c-1/enroll",
            json={"member_id": "m-1", "require_credits": False},
            headers=member,
        )
        assert resp.status_code == 403
        assert store.enrolled("c-1") == []

    async def test_admin_enrolls_without_credits(self, client, store, admin) -> None:
        resp = await client.post(
            "/api/v1/courses/c-1/enroll",
            json={"member_id": "m-2", "require_credits": False},
            headers=admin,
        )
        assert resp.status_code == 200
        assert store.balance("m-2") == 2

    async def test_unknown_course(self, client, store, admin) -> None:
        resp = await client.get("/api/v1/courses/nope/fill", headers=admin)
        assert resp.status_code == 404
        assert resp.json()["reason"] == "course_not_found"

    async def test_self_unenroll_always_refunds(self, client, store, member) -> None:
        await client.post("/api/v1/courses/c-1/enroll", json={"member_id": "m-1"}, headers=member)
        resp = await client.delete(
            "/api/v1/courses/c-1/enroll/m-1", params={"refund": "false"}, headers=member
        )
        assert resp.status_code == 200
        assert store.balance("m-1") == 2

    async def test_repeated_self_unenroll_refunds_once(self, client, store, member) -> None:
        await client.post("/api/v1/courses/c-1/enroll", json={"member_id": "m-1"}, headers=member)
        for _ in range(3):
            resp = await client.delete("/api/v1/courses/c-1/enroll/m-1", headers=member)
            assert resp.status_code == 200
        assert store.balance("m-1") == 2

    async def test_admin_refund_without_booking(self, client, store, admin) -> None:
        resp = await client.delete(
            "/api/v1/courses/c-1/enroll/m-2", params={"refund": "true"}, headers=admin
        )
        assert resp.status_code == 200
        assert store.balance("m-2") == 3

    async def test_admin_unenroll_without_refund(self, client, store, member, admin) -> None:
        await client.post("/api/v1/courses/c-1/enroll", json={"member_id": "m-1"}, headers=member)
        await client.delete("/api/v1/courses/c-1/enroll/m-1", headers=admin)
        assert store.balance("m-1") == 1

    async def test_fill(self, client, store, member, admin) -> None:
        await client.post("/api/v1/courses/c-1/enroll", json={"member_id": "m-1"}, headers=member)
        data = (await client.get("/api/v1/courses/c-1/fill", headers=admin)).json()["data"]
        assert data["fill_rate"] == 100
        assert data["enrolled_names"] == ["Ana"]


class TestCredits:
    async def test_balance_self(self, client, store, member) -> None:
        resp = await client.get("/api/v1/credits/balance/m-1", headers=member)
        assert resp.json()["data"] == {"member_id": "m-1", "balance": 2}

    async def test_balance_other_forbidden(self, client, store, member) -> None:
        resp = await client.get("/api/v1/credits/balance/m-2", headers=member)
        assert resp.status_code == 403

    async def test_grant_by_admin(self, client, store, admin) -> None:
        resp = await client.post(
            "/api/v1/credits/grant", json={"member_id": "m-2", "delta": 5}, headers=admin
        )
        assert resp.json()["data"]["balance"] == 7

    async def test_grant_zero_is_validation_error(self, client, store, admin) -> None:
        resp = await client.post(
            "/api/v1/credits/grant", json={"member_id": "m-2", "delta": 0}, headers=admin
        )
        assert resp.status_code == 422

    async def test_grant_by_member_forbidden(self, client, store, member) -> None:
        resp = await client.post(
            "/api/v1/credits/grant", json={"member_id": "m-1", "delta": 5}, headers=member
        )
        assert resp.status_code == 403
        assert store.balance("m-1") == 2

    async def test_ledger_history(self, client, store, member) -> None:
        resp = await client.get("/api/v1/credits/ledger/m-1", headers=member)
        data = resp.json()["data"]
        assert [i["delta"] for i in data["items"]] == [2]
        assert data["has_more"] is False

    async def test_products(self, client, store, member) -> None:
        resp = await client.get("/api/v1/credits/products", headers=member)
        assert [p["id"] for p in resp.json()["data"]["products"]] == ["p-10"]

    async def test_create_product(self, client, store, admin) -> None:
        resp = await client.post(
            "/api/v1/credits/products",
            json={"name": "Trial", "credits": 1, "price_cents": 0},
            headers=admin,
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["credits"] == 1

    async def test_deactivate_product(self, client, store, admin) -> None:
        resp = await client.patch(
            "/api/v1/credits/products/p-10", json={"active": False}, headers=admin
        )
        assert resp.json()["data"]["active"] is False


class TestPayments:
    async def test_redirect_flow_for_self(self, client, store, member) -> None:
        resp = await client.post(
            "/api/v1/gc/redirect-flow",
            json={"session_token": "sess-api-0001", "product_id": "p-10"},
            headers=member,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["redirect_flow_id"] == "RE0001"
        assert store.flows["sess-api-0001"].member_id == "m-1"

    async def test_success_redirects_to_app(self, client, store, member) -> None:
        await client.post(
            "/api/v1/gc/redirect-flow",
            json={"session_token": "sess-api-0001", "product_id": "p-10"},
            headers=member,
        )
        resp = await client.get(
            "/api/v1/gc/success",
            params={"session_token": "sess-api-0001", "redirect_flow_id": "RE0001"},
        )
        assert resp.status_code == 302
        assert resp.headers["location"] == "resilienceapp://payment-success?credits=10&mandate=MD0001"

    async def test_success_unknown_session_redirects_to_error(self, client, store) -> None:
        resp = await client.get(
            "/api/v1/gc/success",
            params={"session_token": "nope", "redirect_flow_id": "RE0001"},
        )
        assert resp.status_code == 302
        assert resp.headers["location"].startswith("resilienceapp://payment-error?message=")

    async def test_webhook_bad_signature(self, client, store) -> None:
        resp = await client.post(
            "/api/v1/gc/webhooks", content=b'{"events": []}',
            headers={"Webhook-Signature": "bad"},
        )
        assert resp.status_code == 498

    async def test_webhook_signed(self, client, store) -> None:
        body = b'{"events": []}'
        resp = await client.post(
            "/api/v1/gc/webhooks", content=body,
            headers={"Webhook-Signature": compute_signature(body, "test-webhook-secret")},
        )
        assert resp.status_code == 200
        assert resp.json()["data"] == {"processed": 0, "ignored": 0}


class TestMembersExport:
    @pytest.fixture
    def export_repo(self, monkeypatch) -> MagicMock:
        repo = MagicMock()
        repo.list_members = AsyncMock(return_value=[{"id": "m-1", "email": "ana@example.com"}])
        monkeypatch.setattr(members_api, "_service", MemberExportService(repo))
        app.dependency_overrides[get_db_session] = lambda: MagicMock()
        yield repo
        app.dependency_overrides.clear()

    async def test_csv_attachment(self, client, export_repo, admin) -> None:
        resp = await client.get("/api/v1/members/export.csv", headers=admin)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert 'filename="members-' in resp.headers["content-disposition"]
        assert resp.text.splitlines()[1].startswith("m-1,ana@example.com")

    async def test_json(self, client, export_repo, admin) -> None:
        resp = await client.get("/api/v1/members/export.json", headers=admin)
        assert resp.json()["data"]["members"][0]["id"] == "m-1"

    async def test_member_forbidden(self, client, export_repo, member) -> None:
        resp = await client.get("/api/v1/members/export.csv", headers=member)
        assert resp.status_code == 403


class TestStoreUnavailable:
    async def test_operational_error_maps_to_503(self, client, monkeypatch, admin) -> None:
        broken = MagicMock()
        broken.get_roster = AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, ConnectionError("down"))
        )
        monkeypatch.setattr(courses_api, "_service", broken)
        app.dependency_overrides[get_db_session] = lambda: MagicMock()
        try:
            resp = await client.get("/api/v1/courses/c-1/roster", headers=admin)
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 503
        assert resp.json()["reason"] == "ledger_unavailable"
