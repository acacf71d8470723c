"""PaymentApplicationService: redirect flows, payment creation, webhooks.

Processor calls are made outside any open write: the local rows are only
written once the processor has answered, and every local state change is a
conditional UPDATE so that replays (success redirect reloaded, webhook
redelivered) change nothing.

Credits are granted only on payment confirmation, through the ledger's
apply_credit_change, with reference_id = processor payment id.
"""

import json
import logging
from typing import Any
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.rs_common.enums import (
    LedgerSource,
    PaymentFlowStatus,
    PaymentStatus,
    WebhookAction,
)
from src.rs_common.errors import (
    InvalidWebhookPayloadError,
    PaymentFlowNotFoundError,
    PaymentSessionConsumedError,
    ProductNotFoundError,
)
from src.rs_ledger.application.service import LedgerApplicationService
from src.rs_payments.application.schemas import RedirectFlowResponse, WebhookResponse
from src.rs_payments.domain.models import (
    CompletionResult,
    PaymentFlow,
    PaymentTransaction,
    WebhookEvent,
)
from src.rs_payments.domain.repository import (
    PaymentGatewayProtocol,
    PaymentRepositoryProtocol,
)
from src.rs_payments.infrastructure.gocardless_client import GoCardlessClient
from src.rs_payments.infrastructure.persistence import PaymentRepository
from src.rs_payments.infrastructure.webhook_signature import verify_signature

logger = logging.getLogger(__name__)

_CONFIRM_ACTIONS = {WebhookAction.CONFIRMED.value, WebhookAction.PAID_OUT.value}
_FAIL_ACTIONS = {WebhookAction.FAILED.value, WebhookAction.CANCELLED.value}


def success_redirect_url(session_token: str) -> str:
    base = settings.PUBLIC_BASE_URL.rstrip("/")
    return f"{base}/api/v1/gc/success?{urlencode({'session_token': session_token})}"


def parse_webhook_events(body: bytes) -> list[WebhookEvent]:
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidWebhookPayloadError("body is not JSON") from e
    if not isinstance(payload, dict) or not isinstance(payload.get("events"), list):
        raise InvalidWebhookPayloadError("missing events list")

    events: list[WebhookEvent] = []
    for raw in payload["events"]:
        if not isinstance(raw, dict):
            raise InvalidWebhookPayloadError("event is not an object")
        links = raw.get("links") or {}
        events.append(
            WebhookEvent(
                id=str(raw.get("id", "")),
                resource_type=str(raw.get("resource_type", "")),
                action=str(raw.get("action", "")),
                payment_id=links.get("payment"),
            )
        )
    return events


class PaymentApplicationService:
    def __init__(
        self,
        repo: PaymentRepositoryProtocol | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        ledger_service: LedgerApplicationService | None = None,
    ) -> None:
        self._repo: PaymentRepositoryProtocol = repo or PaymentRepository()
        self._gateway: PaymentGatewayProtocol = gateway or GoCardlessClient()
        self._ledger = ledger_service or LedgerApplicationService()

    # ------------------------------------------------------------------
    # Redirect flow
    # ------------------------------------------------------------------

    async def start_redirect_flow(
        self,
        db: AsyncSession,
        member_id: str,
        product_id: str,
        session_token: str,
        email: str | None = None,
        description: str | None = None,
    ) -> RedirectFlowResponse:
        product = await self._ledger.get_active_product(db, product_id)
        existing = await self._repo.get_flow(db, session_token)
        if existing is not None and existing.status == PaymentFlowStatus.COMPLETED.value:
            raise PaymentSessionConsumedError(session_token)

        provider_flow = await self._gateway.create_redirect_flow(
            session_token,
            success_redirect_url(session_token),
            description or product.name,
            email=email,
        )
        try:
            saved = await self._repo.save_flow(
                db,
                PaymentFlow(
                    session_token=session_token,
                    member_id=member_id,
                    product_id=product.id,
                    redirect_flow_id=provider_flow.id,
                ),
            )
            if saved is None:
                raise PaymentSessionConsumedError(session_token)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Redirect flow started: member=%s product=%s flow=%s",
            member_id, product.id, provider_flow.id,
        )
        return RedirectFlowResponse(
            redirect_url=provider_flow.redirect_url or "",
            redirect_flow_id=provider_flow.id,
        )

    async def complete_redirect_flow(
        self, db: AsyncSession, redirect_flow_id: str, session_token: str
    ) -> CompletionResult:
        flow = await self._repo.get_flow(db, session_token)
        if flow is None:
            raise PaymentFlowNotFoundError(session_token)
        if flow.status == PaymentFlowStatus.COMPLETED.value:
            return await self._replayed_completion(db, flow)

        product = await self._ledger.get_product(db, flow.product_id)
        completed = await self._gateway.complete_redirect_flow(redirect_flow_id, session_token)
        payment = await self._gateway.create_payment(
            mandate_id=completed.mandate_id or "",
            amount_cents=product.price_cents,
            currency=settings.PAYMENT_CURRENCY,
            description=product.name,
            metadata={
                "member_id": flow.member_id,
                "product_id": product.id,
                "session_token": session_token,
            },
            # One payment per checkout session, even if this request is replayed
            idempotency_key=session_token,
        )

        try:
            marked = await self._repo.mark_flow_completed(
                db, session_token, redirect_flow_id, completed.mandate_id, completed.customer_id
            )
            await self._repo.insert_transaction(
                db,
                PaymentTransaction(
                    id=payment.id,
                    member_id=flow.member_id,
                    product_id=product.id,
                    credits=product.credits,
                    amount_cents=product.price_cents,
                    currency=settings.PAYMENT_CURRENCY,
                    session_token=session_token,
                    status=PaymentStatus.PENDING.value,
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Redirect flow completed: member=%s mandate=%s payment=%s credits=%d",
            flow.member_id, completed.mandate_id, payment.id, product.credits,
        )
        return CompletionResult(
            credits=product.credits,
            mandate_id=completed.mandate_id,
            transaction_id=payment.id,
            replayed=marked is None,
        )

    async def _replayed_completion(self, db: AsyncSession, flow: PaymentFlow) -> CompletionResult:
        txn = await self._repo.get_transaction_by_session(db, flow.session_token)
        logger.info("Redirect flow replayed: session=%s", flow.session_token)
        return CompletionResult(
            credits=txn.credits if txn else 0,
            mandate_id=flow.mandate_id,
            transaction_id=txn.id if txn else None,
            replayed=True,
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def handle_webhook(
        self, db: AsyncSession, body: bytes, signature: str | None
    ) -> WebhookResponse:
        """Apply every payments event in the batch; raise on the first failure.

        Events already applied stay applied, redelivery of the whole batch is
        a no-op for them.
        """
        verify_signature(body, signature)
        result = WebhookResponse()
        for event in parse_webhook_events(body):
            if event.resource_type != "payments" or not event.payment_id:
                result.ignored += 1
                continue
            if event.action in _CONFIRM_ACTIONS:
                await self.confirm_payment(db, event.payment_id)
            elif event.action in _FAIL_ACTIONS:
                await self.fail_payment(db, event.payment_id)
            else:
                result.ignored += 1
                continue
            result.processed += 1
        return result

    async def confirm_payment(self, db: AsyncSession, transaction_id: str) -> bool:
        """PENDING/FAILED -> CONFIRMED plus the purchase credit. False when already applied."""
        try:
            txn = await self._repo.get_transaction(db, transaction_id)
            if txn is None:
                txn = await self._adopt_unknown_payment(db, transaction_id)
                if txn is None:
                    await db.rollback()
                    return False

            confirmed = await self._repo.confirm_transaction(db, transaction_id)
            if confirmed is None:
                await db.rollback()
                logger.info("Payment already confirmed: %s", transaction_id)
                return False

            balance = await self._ledger.apply_credit_change(
                db,
                confirmed.member_id,
                confirmed.credits,
                LedgerSource.PURCHASE.value,
                f"Purchase {confirmed.credits} credits",
                product_id=confirmed.product_id,
                reference_id=confirmed.id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Payment confirmed: id=%s member=%s credits=%+d balance=%d",
            transaction_id, confirmed.member_id, confirmed.credits, balance,
        )
        return True

    async def fail_payment(self, db: AsyncSession, transaction_id: str) -> bool:
        try:
            failed = await self._repo.fail_transaction(db, transaction_id)
            existing = None
            if failed is None:
                existing = await self._repo.get_transaction(db, transaction_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if failed is not None:
            logger.info("Payment failed: id=%s member=%s", transaction_id, failed.member_id)
            return True
        if existing is None:
            logger.warning("Failure for unknown payment ignored: %s", transaction_id)
        elif existing.status == PaymentStatus.CONFIRMED.value:
            logger.error(
                "Payment %s failed after confirmation: %d credits of member %s "
                "need manual correction",
                transaction_id, existing.credits, existing.member_id,
            )
        return False

    async def _adopt_unknown_payment(
        self, db: AsyncSession, payment_id: str
    ) -> PaymentTransaction | None:
        """Record a payment created elsewhere if its metadata names a member and product."""
        payment = await self._gateway.get_payment(payment_id)
        member_id = payment.metadata.get("member_id")
        product_id = payment.metadata.get("product_id")
        if not member_id or not product_id:
            logger.warning("Unknown payment without member/product metadata ignored: %s", payment_id)
            return None
        try:
            product = await self._ledger.get_product(db, product_id)
        except ProductNotFoundError:
            logger.warning("Unknown payment %s names missing product %s", payment_id, product_id)
            return None
        if payment.amount_cents != product.price_cents:
            logger.warning(
                "Unknown payment %s amount %d does not match product %s price %d, not adopted",
                payment_id, payment.amount_cents, product.id, product.price_cents,
            )
            return None

        txn = PaymentTransaction(
            id=payment.id or payment_id,
            member_id=member_id,
            product_id=product.id,
            credits=product.credits,
            amount_cents=payment.amount_cents,
            currency=payment.currency,
            session_token=payment.metadata.get("session_token"),
            status=PaymentStatus.PENDING.value,
        )
        inserted = await self._repo.insert_transaction(db, txn)
        logger.info("Adopted payment %s for member %s", payment_id, member_id)
        return inserted or txn


def deep_link(path: str, **params: Any) -> str:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    return f"{settings.DEEP_LINK_SCHEME}://{path}" + (f"?{query}" if query else "")
