"""Tests for rs_common.errors and rs_common.response."""

from src.rs_common.errors import (
    AlreadyEnrolledError,
    AppError,
    ConflictError,
    CourseFullError,
    CourseNotFoundError,
    InsufficientCreditsError,
    InvalidWebhookSignatureError,
    InvariantViolation,
    InvariantViolationError,
    LedgerUnavailableError,
    NotFoundError,
    PaymentProviderError,
    PaymentProviderUnavailableError,
    UpstreamUnavailableError,
)
from src.rs_common.response import ApiResponse, error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9003, message="Internal error")
        assert err.code == 9003
        assert err.message == "Internal error"
        assert err.http_status == 500
        assert err.reason == "internal_error"

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1, message="x"), Exception)


class TestSpecificErrors:
    def test_insufficient_credits(self) -> None:
        err = InsufficientCreditsError("member-1", 0)
        assert err.code == 2001
        assert err.http_status == 402
        assert err.reason == "insufficient_credits"
        assert "member-1" in err.message
        assert isinstance(err, ConflictError)

    def test_course_not_found(self) -> None:
        err = CourseNotFoundError("c-9")
        assert err.http_status == 404
        assert "c-9" in err.message
        assert isinstance(err, NotFoundError)

    def test_already_enrolled_and_full_are_conflicts(self) -> None:
        assert AlreadyEnrolledError("c-1", "m-1").http_status == 409
        assert AlreadyEnrolledError("c-1", "m-1").reason == "already_enrolled"
        full = CourseFullError("c-1", 12)
        assert full.reason == "course_full"
        assert "12" in full.message

    def test_ledger_unavailable_is_upstream(self) -> None:
        err = LedgerUnavailableError()
        assert err.http_status == 503
        assert isinstance(err, UpstreamUnavailableError)

    def test_invariant_violation(self) -> None:
        err = InvariantViolation("insert refused")
        assert isinstance(err, InvariantViolationError)
        assert err.http_status == 500
        assert "insert refused" in err.message

    def test_webhook_signature_uses_498(self) -> None:
        assert InvalidWebhookSignatureError().http_status == 498

    def test_provider_error_keeps_conflicting_resource(self) -> None:
        err = PaymentProviderError(409, "duplicate", "PM123")
        assert err.provider_status == 409
        assert err.conflicting_resource_id == "PM123"
        assert err.http_status == 502

    def test_provider_unavailable(self) -> None:
        assert PaymentProviderUnavailableError("timeout").http_status == 503


class TestApiResponse:
    def test_success_response(self) -> None:
        resp = success_response({"balance": 3})
        assert isinstance(resp, ApiResponse)
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"balance": 3}
        assert resp.reason is None
        assert resp.request_id.startswith("req_")

    def test_error_response(self) -> None:
        resp = error_response(3003, "Course is full", "course_full")
        assert resp.code == 3003
        assert resp.data is None
        assert resp.reason == "course_full"

    def test_timestamp_is_iso(self) -> None:
        assert "T" in success_response().timestamp
