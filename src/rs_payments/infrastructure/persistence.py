"""PaymentRepository: payment_flows and payment_transactions, raw SQL.

Status changes are conditional UPDATE ... RETURNING: 0 rows means the
transition already happened (or never can), which is how webhook redelivery
and replayed success redirects become no-ops.

Transaction ownership: the CALLER commits or rolls back.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_payments.domain.models import PaymentFlow, PaymentTransaction

_FLOW_COLUMNS = """
    session_token, member_id, product_id, redirect_flow_id,
    status, mandate_id, customer_id, created_at
"""

_TXN_COLUMNS = """
    id, member_id, product_id, credits, amount_cents, currency,
    session_token, status, applied_at, created_at
"""

_GET_FLOW_SQL = text(f"""
    SELECT {_FLOW_COLUMNS}
    FROM payment_flows
    WHERE session_token = :session_token
""")

# Re-starting a flow is allowed until it has been completed
_SAVE_FLOW_SQL = text(f"""
    INSERT INTO payment_flows (session_token, member_id, product_id, redirect_flow_id)
    VALUES (:session_token, :member_id, :product_id, :redirect_flow_id)
    ON CONFLICT (session_token) DO UPDATE
        SET member_id = EXCLUDED.member_id,
            product_id = EXCLUDED.product_id,
            redirect_flow_id = EXCLUDED.redirect_flow_id
        WHERE payment_flows.status = 'CREATED'
    RETURNING {_FLOW_COLUMNS}
""")

_COMPLETE_FLOW_SQL = text(f"""
    UPDATE payment_flows
    SET status = 'COMPLETED',
        redirect_flow_id = :redirect_flow_id,
        mandate_id = :mandate_id,
        customer_id = :customer_id
    WHERE session_token = :session_token AND status = 'CREATED'
    RETURNING {_FLOW_COLUMNS}
""")

_INSERT_TXN_SQL = text(f"""
    INSERT INTO payment_transactions
        (id, member_id, product_id, credits, amount_cents, currency, session_token, status)
    VALUES
        (:id, :member_id, :product_id, :credits, :amount_cents, :currency,
         :session_token, :status)
    ON CONFLICT (id) DO NOTHING
    RETURNING {_TXN_COLUMNS}
""")

_GET_TXN_SQL = text(f"""
    SELECT {_TXN_COLUMNS}
    FROM payment_transactions
    WHERE id = :id
""")

_GET_TXN_BY_SESSION_SQL = text(f"""
    SELECT {_TXN_COLUMNS}
    FROM payment_transactions
    WHERE session_token = :session_token
    ORDER BY created_at DESC
    LIMIT 1
""")

# FAILED -> CONFIRMED is legal: the processor may resubmit a failed collection
_CONFIRM_TXN_SQL = text(f"""
    UPDATE payment_transactions
    SET status = 'CONFIRMED', applied_at = NOW()
    WHERE id = :id AND status IN ('PENDING', 'FAILED')
    RETURNING {_TXN_COLUMNS}
""")

_FAIL_TXN_SQL = text(f"""
    UPDATE payment_transactions
    SET status = 'FAILED'
    WHERE id = :id AND status = 'PENDING'
    RETURNING {_TXN_COLUMNS}
""")


def _row_to_flow(row: object) -> PaymentFlow:
    return PaymentFlow(
        session_token=row.session_token,  # type: ignore[attr-defined]
        member_id=row.member_id,  # type: ignore[attr-defined]
        product_id=row.product_id,  # type: ignore[attr-defined]
        redirect_flow_id=row.redirect_flow_id,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        mandate_id=row.mandate_id,  # type: ignore[attr-defined]
        customer_id=row.customer_id,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_txn(row: object) -> PaymentTransaction:
    return PaymentTransaction(
        id=row.id,  # type: ignore[attr-defined]
        member_id=row.member_id,  # type: ignore[attr-defined]
        product_id=row.product_id,  # type: ignore[attr-defined]
        credits=row.credits,  # type: ignore[attr-defined]
        amount_cents=row.amount_cents,  # type: ignore[attr-defined]
        currency=row.currency,  # type: ignore[attr-defined]
        session_token=row.session_token,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        applied_at=row.applied_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class PaymentRepository:
    async def get_flow(self, db: AsyncSession, session_token: str) -> PaymentFlow | None:
        result = await db.execute(_GET_FLOW_SQL, {"session_token": session_token})
        row = result.fetchone()
        return _row_to_flow(row) if row else None

    async def save_flow(self, db: AsyncSession, flow: PaymentFlow) -> PaymentFlow | None:
        """Insert or refresh a CREATED flow. None if the session is already completed."""
        result = await db.execute(
            _SAVE_FLOW_SQL,
            {
                "session_token": flow.session_token,
                "member_id": flow.member_id,
                "product_id": flow.product_id,
                "redirect_flow_id": flow.redirect_flow_id,
            },
        )
        row = result.fetchone()
        return _row_to_flow(row) if row else None

    async def mark_flow_completed(
        self,
        db: AsyncSession,
        session_token: str,
        redirect_flow_id: str,
        mandate_id: str | None,
        customer_id: str | None,
    ) -> PaymentFlow | None:
        result = await db.execute(
            _COMPLETE_FLOW_SQL,
            {
                "session_token": session_token,
                "redirect_flow_id": redirect_flow_id,
                "mandate_id": mandate_id,
                "customer_id": customer_id,
            },
        )
        row = result.fetchone()
        return _row_to_flow(row) if row else None

    async def insert_transaction(
        self, db: AsyncSession, txn: PaymentTransaction
    ) -> PaymentTransaction | None:
        result = await db.execute(
            _INSERT_TXN_SQL,
            {
                "id": txn.id,
                "member_id": txn.member_id,
                "product_id": txn.product_id,
                "credits": txn.credits,
                "amount_cents": txn.amount_cents,
                "currency": txn.currency,
                "session_token": txn.session_token,
                "status": txn.status,
            },
        )
        row = result.fetchone()
        return _row_to_txn(row) if row else None

    async def get_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> PaymentTransaction | None:
        result = await db.execute(_GET_TXN_SQL, {"id": transaction_id})
        row = result.fetchone()
        return _row_to_txn(row) if row else None

    async def get_transaction_by_session(
        self, db: AsyncSession, session_token: str
    ) -> PaymentTransaction | None:
        result = await db.execute(_GET_TXN_BY_SESSION_SQL, {"session_token": session_token})
        row = result.fetchone()
        return _row_to_txn(row) if row else None

    async def confirm_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> PaymentTransaction | None:
        result = await db.execute(_CONFIRM_TXN_SQL, {"id": transaction_id})
        row = result.fetchone()
        return _row_to_txn(row) if row else None

    async def fail_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> PaymentTransaction | None:
        result = await db.execute(_FAIL_TXN_SQL, {"id": transaction_id})
        row = result.fetchone()
        return _row_to_txn(row) if row else None
