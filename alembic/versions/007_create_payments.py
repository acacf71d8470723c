"""007: create payment_flows and payment_transactions tables

Revision ID: 007
Revises: 006
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payment_flows (
            session_token       VARCHAR(128)    PRIMARY KEY,
            member_id           VARCHAR(64)     NOT NULL,
            product_id          VARCHAR(64)     NOT NULL,
            redirect_flow_id    VARCHAR(64),
            status              VARCHAR(20)     NOT NULL DEFAULT 'CREATED',
            mandate_id          VARCHAR(64),
            customer_id         VARCHAR(64),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_payment_flows_status CHECK (status IN ('CREATED', 'COMPLETED'))
        );
    """)
    op.execute("CREATE INDEX idx_payment_flows_member ON payment_flows (member_id);")
    op.execute("""
        CREATE TRIGGER trg_payment_flows_updated_at
        BEFORE UPDATE ON payment_flows
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE payment_transactions (
            id                  VARCHAR(64)     PRIMARY KEY,
            session_token       VARCHAR(128),
            member_id           VARCHAR(64)     NOT NULL,
            product_id          VARCHAR(64)     NOT NULL,
            credits             INT             NOT NULL,
            amount_cents        INT             NOT NULL,
            currency            VARCHAR(3)      NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            applied_at          TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_payment_transactions_status CHECK (
                status IN ('PENDING', 'CONFIRMED', 'FAILED')
            ),
            CONSTRAINT ck_payment_transactions_credits_gt_0 CHECK (credits > 0)
        );
    """)
    op.execute("CREATE INDEX idx_payment_transactions_member ON payment_transactions (member_id);")
    op.execute("""
        CREATE INDEX idx_payment_transactions_session
        ON payment_transactions (session_token)
        WHERE session_token IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_payment_transactions_updated_at
        BEFORE UPDATE ON payment_transactions
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payment_transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS payment_flows CASCADE;")
