"""Repository Protocols: dependency inversion for testability.

Unit tests inject a mock or an in-memory fake that conforms to these Protocols.
Infrastructure layer provides the real implementations.

Locking contract: ``lock_course`` and ``lock_member`` hold their lock until the
surrounding transaction ends. Callers always lock the course before the member.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_ledger.domain.models import (
    Course,
    CreditLedgerEntry,
    CreditProduct,
    Enrollment,
    RosterEntry,
)


class CreditLedgerRepositoryProtocol(Protocol):
    async def lock_member(self, db: AsyncSession, member_id: str) -> None: ...

    async def get_balance(self, db: AsyncSession, member_id: str) -> int: ...

    async def append_entry(
        self,
        db: AsyncSession,
        member_id: str,
        delta: int,
        source: str,
        note: str | None,
        course_id: str | None = None,
        product_id: str | None = None,
        reference_id: str | None = None,
    ) -> CreditLedgerEntry: ...

    async def list_entries(
        self,
        db: AsyncSession,
        member_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[CreditLedgerEntry]: ...


class EnrollmentRepositoryProtocol(Protocol):
    async def get_course(self, db: AsyncSession, course_id: str) -> Course | None: ...

    async def lock_course(self, db: AsyncSession, course_id: str) -> Course | None: ...

    async def get_enrollment(
        self, db: AsyncSession, course_id: str, member_id: str
    ) -> Enrollment | None: ...

    async def count_enrollments(self, db: AsyncSession, course_id: str) -> int: ...

    async def insert_enrollment(
        self, db: AsyncSession, course_id: str, member_id: str
    ) -> Enrollment | None: ...

    async def delete_enrollment(
        self, db: AsyncSession, course_id: str, member_id: str
    ) -> int: ...

    async def list_roster(self, db: AsyncSession, course_id: str) -> list[RosterEntry]: ...


class CreditProductRepositoryProtocol(Protocol):
    async def create_product(
        self,
        db: AsyncSession,
        name: str,
        credits: int,
        price_cents: int,
        biody: bool,
        active: bool,
    ) -> CreditProduct: ...

    async def list_products(
        self, db: AsyncSession, active: bool | None, biody: bool | None
    ) -> list[CreditProduct]: ...

    async def get_product(self, db: AsyncSession, product_id: str) -> CreditProduct | None: ...

    async def set_active(
        self, db: AsyncSession, product_id: str, active: bool
    ) -> CreditProduct | None: ...
