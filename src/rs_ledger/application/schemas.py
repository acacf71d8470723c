"""Pydantic schemas and cursor utilities for rs_ledger API."""

import base64
import json

from pydantic import BaseModel, Field, field_validator

from src.rs_common.enums import LedgerSource
from src.rs_ledger.domain.models import (
    Course,
    CreditLedgerEntry,
    CreditProduct,
    RosterEntry,
)
from src.rs_ledger.domain.roster import fill_rate

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except Exception:
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class EnrollRequest(BaseModel):
    member_id: str = Field(..., min_length=1, max_length=64)
    require_credits: bool = True


class GrantCreditsRequest(BaseModel):
    member_id: str = Field(..., min_length=1, max_length=64)
    delta: int = Field(..., description="Signed credit adjustment, never 0")
    source: LedgerSource = LedgerSource.ADMIN
    note: str | None = Field(None, max_length=500)

    @field_validator("delta")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("delta must be non-zero")
        return value


class CreateProductRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    credits: int = Field(..., gt=0)
    price_cents: int = Field(..., ge=0)
    biody: bool = False
    active: bool = True


class UpdateProductRequest(BaseModel):
    active: bool


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RosterItem(BaseModel):
    member_id: str
    name: str
    email: str

    @classmethod
    def from_domain(cls, entry: RosterEntry) -> "RosterItem":
        return cls(member_id=entry.member_id, name=entry.name, email=entry.email)


class RosterResponse(BaseModel):
    course_id: str
    roster: list[RosterItem]


class EnrollResponse(BaseModel):
    course_id: str
    roster: list[RosterItem]
    enrolled: int
    capacity: int
    balance: int | None = None


class CourseFillResponse(BaseModel):
    course_id: str
    course_name: str
    capacity: int
    enrolled_count: int
    fill_rate: int
    enrolled_names: list[str]
    roster: list[RosterItem]

    @classmethod
    def from_roster(cls, course: Course, roster: list[RosterEntry]) -> "CourseFillResponse":
        return cls(
            course_id=course.id,
            course_name=course.name,
            capacity=course.capacity,
            enrolled_count=len(roster),
            fill_rate=fill_rate(len(roster), course.capacity),
            enrolled_names=[r.name for r in roster],
            roster=[RosterItem.from_domain(r) for r in roster],
        )


class BalanceResponse(BaseModel):
    member_id: str
    balance: int


class LedgerEntryItem(BaseModel):
    id: int
    delta: int
    source: str
    note: str | None
    course_id: str | None
    product_id: str | None
    reference_id: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, entry: CreditLedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            delta=entry.delta,
            source=entry.source,
            note=entry.note,
            course_id=entry.course_id,
            product_id=entry.product_id,
            reference_id=entry.reference_id,
            created_at=entry.created_at.isoformat() if entry.created_at else "",
        )


class LedgerResponse(BaseModel):
    member_id: str
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool


class ProductItem(BaseModel):
    id: str
    name: str
    credits: int
    price_cents: int
    biody: bool
    active: bool

    @classmethod
    def from_domain(cls, product: CreditProduct) -> "ProductItem":
        return cls(
            id=product.id,
            name=product.name,
            credits=product.credits,
            price_cents=product.price_cents,
            biody=product.biody,
            active=product.active,
        )


class ProductListResponse(BaseModel):
    products: list[ProductItem]
