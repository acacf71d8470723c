"""UTC datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def file_timestamp(moment: datetime | None = None) -> str:
    """Filesystem-safe timestamp: 2025-03-01T10:20:30 -> '2025-03-01-10-20-30'."""
    moment = moment or utc_now()
    return moment.strftime("%Y-%m-%d-%H-%M-%S")
