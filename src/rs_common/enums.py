"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class LedgerSource(str, Enum):
    PURCHASE = "purchase"
    ADMIN = "admin"
    BOOKING = "booking"
    UNBOOKING = "unbooking"


class PaymentFlowStatus(str, Enum):
    CREATED = "CREATED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class WebhookAction(str, Enum):
    """GoCardless ``payments`` event actions this service reacts to."""
    CONFIRMED = "confirmed"
    PAID_OUT = "paid_out"
    FAILED = "failed"
    CANCELLED = "cancelled"
