"""Domain models for rs_ledger: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Course:
    id: str
    name: str
    capacity: int            # places, >= 0
    starts_at: datetime | None = None


@dataclass
class Enrollment:
    course_id: str
    member_id: str
    created_at: datetime | None = None


@dataclass
class RosterEntry:
    member_id: str
    name: str
    email: str = ""


@dataclass
class CreditLedgerEntry:
    id: int                          # BIGSERIAL
    member_id: str
    delta: int                       # signed, never 0
    source: str                      # LedgerSource value
    note: str | None = None
    course_id: str | None = None
    product_id: str | None = None
    reference_id: str | None = None  # processor payment id for purchases
    created_at: datetime | None = None


@dataclass
class CreditProduct:
    id: str
    name: str
    credits: int
    price_cents: int
    biody: bool = False
    active: bool = True
    created_at: datetime | None = None

