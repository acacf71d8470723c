"""004: create enrollments table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE enrollments (
            id              BIGSERIAL       PRIMARY KEY,
            course_id       VARCHAR(64)     NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            member_id       VARCHAR(64)     NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_enrollments_course_member UNIQUE (course_id, member_id)
        );
    """)
    op.execute("CREATE INDEX idx_enrollments_course_time ON enrollments (course_id, created_at);")
    op.execute("CREATE INDEX idx_enrollments_member ON enrollments (member_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS enrollments CASCADE;")
