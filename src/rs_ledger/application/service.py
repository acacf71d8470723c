"""LedgerApplicationService: credit balance, enrollment and product catalogue.

Every mutating operation runs in the caller's session and ends with exactly one
commit; any exception rolls the whole unit back, so an enrollment and its
booking debit are either both written or neither is.
Lock order inside a transaction is always course -> member.
Read-only operations (balance, roster, fill, ledger history, products) run
without an explicit transaction.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_common.enums import LedgerSource
from src.rs_common.errors import (
    AlreadyEnrolledError,
    CourseFullError,
    CourseNotFoundError,
    InsufficientCreditsError,
    InvalidCreditDeltaError,
    InvariantViolation,
    ProductNotFoundError,
)
from src.rs_ledger.application.schemas import (
    BalanceResponse,
    CourseFillResponse,
    EnrollResponse,
    LedgerEntryItem,
    LedgerResponse,
    ProductItem,
    ProductListResponse,
    RosterItem,
    RosterResponse,
    cursor_decode,
    cursor_encode,
)
from src.rs_ledger.domain.models import Course, CreditProduct
from src.rs_ledger.domain.repository import (
    CreditLedgerRepositoryProtocol,
    CreditProductRepositoryProtocol,
    EnrollmentRepositoryProtocol,
)
from src.rs_ledger.infrastructure.persistence import (
    CreditLedgerRepository,
    EnrollmentRepository,
)
from src.rs_ledger.infrastructure.products_repository import CreditProductRepository

logger = logging.getLogger(__name__)


class LedgerApplicationService:
    def __init__(
        self,
        ledger_repo: CreditLedgerRepositoryProtocol | None = None,
        enrollment_repo: EnrollmentRepositoryProtocol | None = None,
        product_repo: CreditProductRepositoryProtocol | None = None,
    ) -> None:
        self._ledger: CreditLedgerRepositoryProtocol = ledger_repo or CreditLedgerRepository()
        self._enrollments: EnrollmentRepositoryProtocol = (
            enrollment_repo or EnrollmentRepository()
        )
        self._products: CreditProductRepositoryProtocol = (
            product_repo or CreditProductRepository()
        )

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------

    async def get_balance(self, db: AsyncSession, member_id: str) -> BalanceResponse:
        # A member without ledger rows simply has balance 0
        balance = await self._ledger.get_balance(db, member_id)
        return BalanceResponse(member_id=member_id, balance=balance)

    async def apply_credit_change(
        self,
        db: AsyncSession,
        member_id: str,
        delta: int,
        source: str,
        note: str | None,
        product_id: str | None = None,
        reference_id: str | None = None,
    ) -> int:
        """Append one ledger entry inside the caller's transaction; return the new balance.

        Does not commit. Used by grant_credits and by payment confirmation.
        """
        if delta == 0:
            raise InvalidCreditDeltaError()
        await self._ledger.lock_member(db, member_id)
        await self._ledger.append_entry(
            db,
            member_id,
            delta,
            source,
            note,
            product_id=product_id,
            reference_id=reference_id,
        )
        return await self._ledger.get_balance(db, member_id)

    async def grant_credits(
        self,
        db: AsyncSession,
        member_id: str,
        delta: int,
        source: str = LedgerSource.ADMIN.value,
        note: str | None = None,
    ) -> BalanceResponse:
        """Unconditional adjustment: no capacity or sufficiency check."""
        try:
            balance = await self.apply_credit_change(
                db, member_id, delta, source, note or "Admin adjustment"
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Credits granted: member=%s delta=%+d source=%s balance=%d",
            member_id, delta, source, balance,
        )
        return BalanceResponse(member_id=member_id, balance=balance)

    async def list_ledger(
        self,
        db: AsyncSession,
        member_id: str,
        cursor: str | None,
        limit: int,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._ledger.list_entries(db, member_id, cursor_id, limit + 1)
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(
            member_id=member_id,
            items=[LedgerEntryItem.from_domain(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------

    async def enroll(
        self,
        db: AsyncSession,
        course_id: str,
        member_id: str,
        require_credits: bool = True,
    ) -> EnrollResponse:
        balance: int | None = None
        try:
            course = await self._enrollments.lock_course(db, course_id)
            if course is None:
                raise CourseNotFoundError(course_id)
            if await self._enrollments.get_enrollment(db, course_id, member_id) is not None:
                raise AlreadyEnrolledError(course_id, member_id)
            if await self._enrollments.count_enrollments(db, course_id) >= course.capacity:
                raise CourseFullError(course_id, course.capacity)

            if require_credits:
                await self._ledger.lock_member(db, member_id)
                balance = await self._ledger.get_balance(db, member_id)
                if balance <= 0:
                    raise InsufficientCreditsError(member_id, balance)

            enrollment = await self._enrollments.insert_enrollment(db, course_id, member_id)
            if enrollment is None:
                # Checks passed under the course lock, so the conditional insert must succeed
                logger.error(
                    "Conditional enrollment insert refused after checks: course=%s member=%s",
                    course_id, member_id,
                )
                raise InvariantViolation(
                    f"enrollment insert refused for course {course_id}, member {member_id}"
                )

            if require_credits:
                await self._ledger.append_entry(
                    db,
                    member_id,
                    -1,
                    LedgerSource.BOOKING.value,
                    _booking_note(course, "Booking"),
                    course_id=course_id,
                )
                balance = (balance or 0) - 1
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Enrolled: course=%s member=%s require_credits=%s balance=%s",
            course_id, member_id, require_credits, balance,
        )
        roster = await self._enrollments.list_roster(db, course_id)
        return EnrollResponse(
            course_id=course_id,
            roster=[RosterItem.from_domain(r) for r in roster],
            enrolled=len(roster),
            capacity=course.capacity,
            balance=balance,
        )

    async def unenroll(
        self,
        db: AsyncSession,
        course_id: str,
        member_id: str,
        refund: bool = False,
        refund_only_if_removed: bool = False,
    ) -> RosterResponse:
        """Remove an enrollment; deleting a missing one is a no-op.

        With refund, one unbooking credit is appended whether or not a row was
        removed, unless refund_only_if_removed is set. An unknown course is not
        an error.
        """
        try:
            # Course row lock first when the course exists: course -> member order
            course = await self._enrollments.lock_course(db, course_id)
            deleted = await self._enrollments.delete_enrollment(db, course_id, member_id)
            refunded = refund and (bool(deleted) or not refund_only_if_removed)
            if refunded:
                await self._ledger.lock_member(db, member_id)
                await self._ledger.append_entry(
                    db,
                    member_id,
                    1,
                    LedgerSource.UNBOOKING.value,
                    _cancellation_note(course, course_id),
                    course_id=course_id,
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Unenrolled: course=%s member=%s removed=%s refunded=%s",
            course_id, member_id, bool(deleted), refunded,
        )
        roster = await self._enrollments.list_roster(db, course_id)
        return RosterResponse(
            course_id=course_id, roster=[RosterItem.from_domain(r) for r in roster]
        )

    async def get_roster(self, db: AsyncSession, course_id: str) -> RosterResponse:
        if await self._enrollments.get_course(db, course_id) is None:
            raise CourseNotFoundError(course_id)
        roster = await self._enrollments.list_roster(db, course_id)
        return RosterResponse(
            course_id=course_id, roster=[RosterItem.from_domain(r) for r in roster]
        )

    async def get_fill(self, db: AsyncSession, course_id: str) -> CourseFillResponse:
        course = await self._enrollments.get_course(db, course_id)
        if course is None:
            raise CourseNotFoundError(course_id)
        roster = await self._enrollments.list_roster(db, course_id)
        return CourseFillResponse.from_roster(course, roster)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def create_product(
        self,
        db: AsyncSession,
        name: str,
        credits: int,
        price_cents: int,
        biody: bool = False,
        active: bool = True,
    ) -> ProductItem:
        try:
            product = await self._products.create_product(
                db, name, credits, price_cents, biody, active
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Credit product created: id=%s credits=%d", product.id, product.credits)
        return ProductItem.from_domain(product)

    async def list_products(
        self, db: AsyncSession, active: bool | None = None, biody: bool | None = None
    ) -> ProductListResponse:
        products = await self._products.list_products(db, active, biody)
        return ProductListResponse(products=[ProductItem.from_domain(p) for p in products])

    async def set_product_active(
        self, db: AsyncSession, product_id: str, active: bool
    ) -> ProductItem:
        try:
            product = await self._products.set_active(db, product_id, active)
            if product is None:
                raise ProductNotFoundError(product_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return ProductItem.from_domain(product)

    async def get_product(self, db: AsyncSession, product_id: str) -> CreditProduct:
        """Lookup ignoring the active flag: a flow started before deactivation still pays out."""
        product = await self._products.get_product(db, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    async def get_active_product(self, db: AsyncSession, product_id: str) -> CreditProduct:
        product = await self.get_product(db, product_id)
        if not product.active:
            raise ProductNotFoundError(product_id)
        return product


def _booking_note(course: Course, action: str) -> str:
    return f"{action} course {course.name} ({course.id})"


def _cancellation_note(course: Course | None, course_id: str) -> str:
    if course is None:
        return f"Cancellation course {course_id}"
    return _booking_note(course, "Cancellation")
