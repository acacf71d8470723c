"""002: create members table (if absent)

The members table is owned by the auth side of Supabase in production; this
revision only creates it for fresh local and test databases.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS members (
            id              VARCHAR(64)     PRIMARY KEY,
            email           VARCHAR(320),
            first_name      VARCHAR(100),
            last_name       VARCHAR(100),
            full_name       VARCHAR(200),
            phone           VARCHAR(40),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_members_created ON members (created_at);")


def downgrade() -> None:
    # Shared with the auth side: never dropped from here
    pass
