#!/usr/bin/env python3
"""Export a members-like table to CSV.

Run from the repository root.

Examples:
    python -m scripts.export_members --table members
    python -m scripts.export_members --schema auth --table users --cols "id,email,created_at"
    python -m scripts.export_members --cols "id,full_name,email,credits" --delimiter ";"
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from config.settings import settings
from src.rs_common.database import async_session_factory, engine
from src.rs_common.datetime_utils import file_timestamp
from src.rs_members.application.export import MemberExportService

logger = logging.getLogger("rs.export")

_ROOT = Path(__file__).resolve().parent.parent


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export a table to CSV")
    parser.add_argument("--schema", default="public")
    parser.add_argument("--table", default="members")
    parser.add_argument("--cols", default="", help="Comma-separated column list")
    parser.add_argument("--outfile", default="", help="Output path (default: exports/...)")
    parser.add_argument("--limit", type=int, default=0, help="0 exports every row")
    parser.add_argument("--delimiter", default=",", help="Use ';' for French Excel")
    return parser.parse_args(argv)


def output_path(args: argparse.Namespace) -> Path:
    if args.outfile:
        return Path(args.outfile).resolve()
    return _ROOT / "exports" / f"members-{args.table}-{file_timestamp()}.csv"


async def run(args: argparse.Namespace) -> int:
    columns = [c.strip() for c in args.cols.split(",") if c.strip()] or None
    logger.info("Exporting %s.%s", args.schema, args.table)
    try:
        async with async_session_factory() as db:
            content, count, kept = await MemberExportService().export_table(
                db, args.schema, args.table, columns, args.limit, args.delimiter
            )
    except (LookupError, ValueError) as e:
        logger.error("%s", e)
        return 1
    finally:
        await engine.dispose()

    path = output_path(args)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info("Export done: %s (%d rows, columns: %s)", path, count, ",".join(kept))
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s"
    )
    return asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
