"""005: create credit_products table

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE credit_products (
            id              VARCHAR(64)     PRIMARY KEY,
            name            VARCHAR(200)    NOT NULL,
            credits         INT             NOT NULL,
            price_cents     INT             NOT NULL,
            biody           BOOLEAN         NOT NULL DEFAULT FALSE,
            active          BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_credit_products_credits_gt_0 CHECK (credits > 0),
            CONSTRAINT ck_credit_products_price_gte_0 CHECK (price_cents >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_credit_products_active ON credit_products (active, price_cents);")
    op.execute("""
        CREATE TRIGGER trg_credit_products_updated_at
        BEFORE UPDATE ON credit_products
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS credit_products CASCADE;")
