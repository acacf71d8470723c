"""MemberRepository: read-only access to the members table (and any other
table the export CLI is pointed at).

Schema, table and column names cannot be bound parameters, so they are
validated against information_schema and a strict identifier pattern before
being quoted into the statement.
"""

import re
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

PAGE_SIZE = 1000

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

_LIST_MEMBERS_SQL = text("""
    SELECT *
    FROM members
    ORDER BY created_at ASC, id ASC
""")

_COLUMNS_SQL = text("""
    SELECT column_name
    FROM information_schema.columns
    WHERE table_schema = :schema AND table_name = :table
    ORDER BY ordinal_position
""")


def quote_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


class MemberRepository:
    async def list_members(self, db: AsyncSession) -> list[dict[str, Any]]:
        result = await db.execute(_LIST_MEMBERS_SQL)
        return [dict(row) for row in result.mappings().all()]

    async def list_columns(self, db: AsyncSession, schema: str, table: str) -> list[str]:
        result = await db.execute(_COLUMNS_SQL, {"schema": schema, "table": table})
        return [row[0] for row in result.fetchall()]

    async def iter_pages(
        self,
        db: AsyncSession,
        schema: str,
        table: str,
        columns: list[str],
        order_by: str | None = None,
        limit: int = 0,
        page_size: int = PAGE_SIZE,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield pages of rows; ``limit`` 0 means the whole table."""
        select_list = ", ".join(quote_identifier(c) for c in columns)
        stmt = f"SELECT {select_list} FROM {quote_identifier(schema)}.{quote_identifier(table)}"
        if order_by:
            stmt += f" ORDER BY {quote_identifier(order_by)} ASC"
        stmt += " LIMIT :limit OFFSET :offset"
        query = text(stmt)

        offset = 0
        while True:
            size = page_size if not limit else min(page_size, limit - offset)
            if size <= 0:
                return
            result = await db.execute(query, {"limit": size, "offset": offset})
            rows = [dict(row) for row in result.mappings().all()]
            if not rows:
                return
            yield rows
            offset += len(rows)
            if len(rows) < size:
                return
