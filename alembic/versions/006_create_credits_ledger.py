"""006: create credits_ledger table

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE credits_ledger (
            id              BIGSERIAL       PRIMARY KEY,
            member_id       VARCHAR(64)     NOT NULL,
            delta           INT             NOT NULL,
            source          VARCHAR(20)     NOT NULL,
            note            VARCHAR(500),
            course_id       VARCHAR(64),
            product_id      VARCHAR(64),
            reference_id    VARCHAR(64),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_credits_ledger_delta_ne_0 CHECK (delta <> 0),
            CONSTRAINT ck_credits_ledger_source CHECK (
                source IN ('purchase', 'admin', 'booking', 'unbooking')
            )
        );
    """)
    op.execute("CREATE INDEX idx_credits_ledger_member ON credits_ledger (member_id, id DESC);")
    # A processor payment id can credit at most once
    op.execute("""
        CREATE UNIQUE INDEX uq_credits_ledger_reference
        ON credits_ledger (source, reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_credits_ledger_append_only
        BEFORE UPDATE OR DELETE ON credits_ledger
        FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE credits_ledger IS 'Credit movements, append-only; balance = SUM(delta)';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS credits_ledger CASCADE;")
