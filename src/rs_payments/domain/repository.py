"""Repository and gateway Protocols for rs_payments.

Unit tests inject mocks that conform to these Protocols.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_payments.domain.models import (
    PaymentFlow,
    PaymentTransaction,
    ProviderPayment,
    ProviderRedirectFlow,
)


class PaymentRepositoryProtocol(Protocol):
    async def get_flow(self, db: AsyncSession, session_token: str) -> PaymentFlow | None: ...

    async def save_flow(self, db: AsyncSession, flow: PaymentFlow) -> PaymentFlow | None: ...

    async def mark_flow_completed(
        self,
        db: AsyncSession,
        session_token: str,
        redirect_flow_id: str,
        mandate_id: str | None,
        customer_id: str | None,
    ) -> PaymentFlow | None: ...

    async def insert_transaction(
        self, db: AsyncSession, txn: PaymentTransaction
    ) -> PaymentTransaction | None: ...

    async def get_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> PaymentTransaction | None: ...

    async def get_transaction_by_session(
        self, db: AsyncSession, session_token: str
    ) -> PaymentTransaction | None: ...

    async def confirm_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> PaymentTransaction | None: ...

    async def fail_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> PaymentTransaction | None: ...


class PaymentGatewayProtocol(Protocol):
    async def create_redirect_flow(
        self,
        session_token: str,
        success_redirect_url: str,
        description: str,
        email: str | None = None,
    ) -> ProviderRedirectFlow: ...

    async def complete_redirect_flow(
        self, redirect_flow_id: str, session_token: str
    ) -> ProviderRedirectFlow: ...

    async def create_payment(
        self,
        mandate_id: str,
        amount_cents: int,
        currency: str,
        description: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> ProviderPayment: ...

    async def get_payment(self, payment_id: str) -> ProviderPayment: ...
