"""Unit tests for GoCardlessClient against httpx.MockTransport."""

import json

import httpx
import pytest

from src.rs_common.errors import (
    PaymentProviderError,
    PaymentProviderNotConfiguredError,
    PaymentProviderUnavailableError,
)
from src.rs_payments.infrastructure.gocardless_client import GoCardlessClient

BASE = "https://api-sandbox.gocardless.com"


def _client(handler) -> GoCardlessClient:
    return GoCardlessClient(
        access_token="sandbox_token",
        base_url=BASE,
        timeout=2.0,
        transport=httpx.MockTransport(handler),
    )


def _payment_body(payment_id: str = "PM001") -> dict:
    return {
        "payments": {
            "id": payment_id,
            "status": "pending_submission",
            "amount": 9000,
            "currency": "EUR",
            "metadata": {"member_id": "m-1", "product_id": "p-10"},
        }
    }


class TestRedirectFlows:
    async def test_create_sends_session_and_prefill(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={
                "redirect_flows": {"id": "RE123", "redirect_url": "https://pay.gocardless.com/flow/RE123"}
            })

        flow = await _client(handler).create_redirect_flow(
            "sess-123456", "https://api.test/api/v1/gc/success?session_token=sess-123456",
            "10 credits", email="ana@example.com",
        )

        assert flow.id == "RE123"
        assert flow.redirect_url.endswith("RE123")
        assert seen["path"] == "/redirect_flows"
        assert seen["headers"]["Authorization"] == "Bearer sandbox_token"
        assert seen["headers"]["GoCardless-Version"] == "2015-07-06"
        body = seen["body"]["redirect_flows"]
        assert body["session_token"] == "sess-123456"
        assert body["prefilled_customer"] == {"email": "ana@example.com"}

    async def test_complete_returns_mandate(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/redirect_flows/RE123/actions/complete"
            assert json.loads(request.content) == {"data": {"session_token": "sess-123456"}}
            return httpx.Response(200, json={
                "redirect_flows": {"id": "RE123", "links": {"mandate": "MD9", "customer": "CU9"}}
            })

        flow = await _client(handler).complete_redirect_flow("RE123", "sess-123456")

        assert flow.mandate_id == "MD9"
        assert flow.customer_id == "CU9"


class TestPayments:
    async def test_create_payment_sends_idempotency_key(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers.get("Idempotency-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json=_payment_body())

        payment = await _client(handler).create_payment(
            "MD9", 9000, "EUR", "10 credits", {"member_id": "m-1"}, "sess-123456"
        )

        assert payment.id == "PM001"
        assert payment.amount_cents == 9000
        assert payment.metadata["product_id"] == "p-10"
        assert seen["key"] == "sess-123456"
        assert seen["body"]["payments"]["links"] == {"mandate": "MD9"}

    async def test_idempotent_conflict_returns_existing_payment(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(409, json={"error": {
                    "message": "A resource has already been created with this idempotency key",
                    "errors": [{
                        "reason": "idempotent_creation_conflict",
                        "links": {"conflicting_resource_id": "PM777"},
                    }],
                }})
            assert request.url.path == "/payments/PM777"
            return httpx.Response(200, json=_payment_body("PM777"))

        payment = await _client(handler).create_payment(
            "MD9", 9000, "EUR", "10 credits", {}, "sess-123456"
        )

        assert payment.id == "PM777"

    async def test_validation_error_raises_provider_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"error": {"message": "mandate is cancelled"}})

        with pytest.raises(PaymentProviderError) as exc_info:
            await _client(handler).create_payment("MD9", 9000, "EUR", "x", {}, "k-1")
        assert exc_info.value.provider_status == 422
        assert "mandate is cancelled" in exc_info.value.message

    async def test_html_error_page_raises_provider_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                403, text="<html>Forbidden</html>", headers={"Content-Type": "text/html"}
            )

        with pytest.raises(PaymentProviderError) as exc_info:
            await _client(handler).complete_redirect_flow("RE123", "sess-123456")
        assert exc_info.value.provider_status == 403
        assert exc_info.value.conflicting_resource_id is None

    async def test_non_json_success_raises_provider_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="ok")

        with pytest.raises(PaymentProviderError):
            await _client(handler).get_payment("PM001")

    async def test_server_error_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        with pytest.raises(PaymentProviderUnavailableError):
            await _client(handler).get_payment("PM001")

    async def test_timeout_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(PaymentProviderUnavailableError):
            await _client(handler).get_payment("PM001")

    async def test_missing_token_is_not_configured(self) -> None:
        client = GoCardlessClient(access_token="", base_url=BASE)
        with pytest.raises(PaymentProviderNotConfiguredError):
            await client.get_payment("PM001")
