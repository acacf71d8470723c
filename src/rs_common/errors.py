"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Credits / ledger
  3xxx: Courses / enrollment
  4xxx: Payments
  9xxx: System

Every error carries a machine-readable ``reason`` so that clients can branch
without parsing the human message. The four families below are the ones
callers act on: NotFound (fix the id), Conflict (business rule refused the
change), UpstreamUnavailable (retry later) and InvariantViolation (bug).
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        reason: str = "internal_error",
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.reason = reason
        super().__init__(message)


class NotFoundError(AppError):
    pass


class ConflictError(AppError):
    pass


class UpstreamUnavailableError(AppError):
    pass


class InvariantViolationError(AppError):
    pass


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401, "invalid_credentials")


class ForbiddenError(AppError):
    def __init__(self, detail: str = "Operation not allowed") -> None:
        super().__init__(1002, detail, 403, "forbidden")


# --- 2xxx: Credits ---

class InsufficientCreditsError(ConflictError):
    def __init__(self, member_id: str, balance: int) -> None:
        super().__init__(
            2001,
            f"Insufficient credits for member {member_id}: balance {balance}",
            402,
            "insufficient_credits",
        )


class InvalidCreditDeltaError(AppError):
    def __init__(self) -> None:
        super().__init__(2002, "Credit delta must be a non-zero integer", 422, "invalid_delta")


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str) -> None:
        super().__init__(2003, f"Credit product not found: {product_id}", 404, "product_not_found")


# --- 3xxx: Courses ---

class CourseNotFoundError(NotFoundError):
    def __init__(self, course_id: str) -> None:
        super().__init__(3001, f"Course not found: {course_id}", 404, "course_not_found")


class AlreadyEnrolledError(ConflictError):
    def __init__(self, course_id: str, member_id: str) -> None:
        super().__init__(
            3002,
            f"Member {member_id} is already enrolled in course {course_id}",
            409,
            "already_enrolled",
        )


class CourseFullError(ConflictError):
    def __init__(self, course_id: str, capacity: int) -> None:
        super().__init__(
            3003, f"Course {course_id} is full ({capacity} places)", 409, "course_full"
        )


# --- 4xxx: Payments ---

class PaymentFlowNotFoundError(NotFoundError):
    def __init__(self, session_token: str) -> None:
        super().__init__(
            4001, f"No payment flow for session {session_token}", 404, "payment_flow_not_found"
        )


class PaymentSessionConsumedError(ConflictError):
    def __init__(self, session_token: str) -> None:
        super().__init__(
            4006, f"Payment session {session_token} was already completed", 409,
            "payment_session_consumed",
        )


class InvalidWebhookSignatureError(AppError):
    def __init__(self) -> None:
        # 498 is what GoCardless expects for a rejected signature
        super().__init__(4002, "Invalid webhook signature", 498, "invalid_signature")


class InvalidWebhookPayloadError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4007, f"Malformed webhook payload: {detail}", 400, "invalid_webhook_payload")


class PaymentProviderError(AppError):
    def __init__(
        self, status: int, detail: str, conflicting_resource_id: str | None = None
    ) -> None:
        super().__init__(
            4003, f"Payment provider rejected the request ({status}): {detail}", 502,
            "payment_provider_error",
        )
        self.provider_status = status
        self.conflicting_resource_id = conflicting_resource_id


class PaymentProviderUnavailableError(UpstreamUnavailableError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            4004, f"Payment provider unavailable: {detail}", 503, "payment_provider_unavailable"
        )


class PaymentProviderNotConfiguredError(UpstreamUnavailableError):
    def __init__(self) -> None:
        super().__init__(
            4005, "Payment provider is not configured", 503, "payment_provider_not_configured"
        )


# --- 9xxx: System ---

class LedgerUnavailableError(UpstreamUnavailableError):
    def __init__(self, detail: str = "Data store unavailable") -> None:
        super().__init__(9001, detail, 503, "ledger_unavailable")


class InvariantViolation(InvariantViolationError):
    def __init__(self, detail: str) -> None:
        super().__init__(9002, f"Invariant violated: {detail}", 500, "invariant_violation")


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9003, detail, 500)
