"""Member export: JSON rows for the API, CSV for the API and the CLI."""

import csv
import io
import logging
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_common.datetime_utils import file_timestamp
from src.rs_members.infrastructure.persistence import MemberRepository

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "id",
    "email",
    "first_name",
    "last_name",
    "full_name",
    "phone",
    "created_at",
    "updated_at",
]

# CLI default when --cols is not given; missing ones are dropped
DEFAULT_TABLE_COLUMNS = [
    "id",
    "email",
    "created_at",
    "updated_at",
    "full_name",
    "first_name",
    "last_name",
    "phone",
    "credits",
    "is_active",
]


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_csv(
    rows: Iterable[dict[str, Any]], columns: list[str], delimiter: str = ","
) -> str:
    """Header line plus one line per row; fields quoted only when needed."""
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=delimiter, quoting=csv.QUOTE_MINIMAL)
    writer.writerow(columns)
    for row in rows:
        writer.writerow([_cell(row.get(c)) for c in columns])
    return buf.getvalue()


def csv_filename(prefix: str = "members") -> str:
    return f"{prefix}-{file_timestamp()}.csv"


class MemberExportService:
    def __init__(self, repo: MemberRepository | None = None) -> None:
        self._repo = repo or MemberRepository()

    async def export_json(self, db: AsyncSession) -> list[dict[str, Any]]:
        return await self._repo.list_members(db)

    async def export_csv(self, db: AsyncSession) -> tuple[str, str]:
        """Return (filename, csv text) for the members table."""
        rows = await self._repo.list_members(db)
        logger.info("Members CSV export: %d rows", len(rows))
        return csv_filename(), to_csv(rows, CSV_COLUMNS)

    async def export_table(
        self,
        db: AsyncSession,
        schema: str,
        table: str,
        columns: list[str] | None = None,
        limit: int = 0,
        delimiter: str = ",",
    ) -> tuple[str, int, list[str]]:
        """Export any table page by page. Returns (csv text, row count, columns kept)."""
        existing = await self._repo.list_columns(db, schema, table)
        if not existing:
            raise LookupError(f"Table {schema}.{table} not found or has no columns")
        wanted = columns or DEFAULT_TABLE_COLUMNS
        kept = [c for c in wanted if c in existing]
        if not kept:
            raise LookupError(f"None of the requested columns exist in {schema}.{table}")
        dropped = [c for c in wanted if c not in existing]
        if dropped:
            logger.info("Skipping missing columns: %s", ", ".join(dropped))

        order_by = "created_at" if "created_at" in existing else None
        rows: list[dict[str, Any]] = []
        async for page in self._repo.iter_pages(db, schema, table, kept, order_by, limit):
            rows.extend(page)
        return to_csv(rows, kept, delimiter), len(rows), kept
