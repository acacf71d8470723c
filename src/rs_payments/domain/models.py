"""Domain models for rs_payments: pure dataclasses.

The processor owns the redirect-flow / mandate / payment lifecycle. Locally we
only keep what is needed to correlate its ids with our members and to apply
each confirmed payment to the ledger exactly once.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class PaymentFlow:
    session_token: str
    member_id: str
    product_id: str
    redirect_flow_id: str | None = None
    status: str = "CREATED"          # PaymentFlowStatus value
    mandate_id: str | None = None
    customer_id: str | None = None
    created_at: datetime | None = None


@dataclass
class PaymentTransaction:
    id: str                          # processor payment id (transaction id)
    member_id: str
    product_id: str
    credits: int
    amount_cents: int
    currency: str
    session_token: str | None = None
    status: str = "PENDING"          # PaymentStatus value
    applied_at: datetime | None = None
    created_at: datetime | None = None


@dataclass
class WebhookEvent:
    id: str
    resource_type: str
    action: str
    payment_id: str | None = None


# ---------------------------------------------------------------------------
# Processor-side views (parsed API responses)
# ---------------------------------------------------------------------------


@dataclass
class ProviderRedirectFlow:
    id: str
    redirect_url: str | None = None
    mandate_id: str | None = None
    customer_id: str | None = None


@dataclass
class ProviderPayment:
    id: str
    status: str
    amount_cents: int = 0
    currency: str = "EUR"
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class CompletionResult:
    credits: int
    mandate_id: str | None
    transaction_id: str | None
    replayed: bool = False
