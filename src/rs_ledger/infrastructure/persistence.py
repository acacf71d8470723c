"""Ledger and enrollment repositories: raw ``text()`` SQL, no ORM.

Capacity and uniqueness are enforced by the INSERT itself (conditional insert +
ON CONFLICT), so an enrollment row exists only if it fit at commit time.
Serialization per course comes from ``SELECT ... FOR UPDATE`` on the course
row, per member from a transaction-scoped advisory lock.

Transaction ownership: the CALLER (application service) commits or rolls back.
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_common.errors import InternalError
from src.rs_ledger.domain.models import Course, CreditLedgerEntry, Enrollment, RosterEntry
from src.rs_ledger.domain.roster import display_name

# ---------------------------------------------------------------------------
# SQL: courses / enrollments
# ---------------------------------------------------------------------------

_GET_COURSE_SQL = text("""
    SELECT id, name, capacity, starts_at
    FROM courses
    WHERE id = :course_id
""")

_LOCK_COURSE_SQL = text("""
    SELECT id, name, capacity, starts_at
    FROM courses
    WHERE id = :course_id
    FOR UPDATE
""")

_GET_ENROLLMENT_SQL = text("""
    SELECT course_id, member_id, created_at
    FROM enrollments
    WHERE course_id = :course_id AND member_id = :member_id
""")

_COUNT_ENROLLMENTS_SQL = text("""
    SELECT COUNT(*) FROM enrollments WHERE course_id = :course_id
""")

_INSERT_ENROLLMENT_SQL = text("""
    INSERT INTO enrollments (course_id, member_id)
    SELECT c.id, :member_id
    FROM courses c
    WHERE c.id = :course_id
      AND (SELECT COUNT(*) FROM enrollments e WHERE e.course_id = c.id) < c.capacity
    ON CONFLICT (course_id, member_id) DO NOTHING
    RETURNING course_id, member_id, created_at
""")

_DELETE_ENROLLMENT_SQL = text("""
    DELETE FROM enrollments
    WHERE course_id = :course_id AND member_id = :member_id
""")

_ROSTER_SQL = text("""
    SELECT e.member_id, m.full_name, m.first_name, m.last_name, m.email
    FROM enrollments e
    LEFT JOIN members m ON m.id = e.member_id
    WHERE e.course_id = :course_id
    ORDER BY e.created_at ASC, e.id ASC
""")

# ---------------------------------------------------------------------------
# SQL: credits ledger
# ---------------------------------------------------------------------------

_LOCK_MEMBER_SQL = text("""
    SELECT pg_advisory_xact_lock(hashtextextended(:lock_key, 0))
""")

_BALANCE_SQL = text("""
    SELECT COALESCE(SUM(delta), 0) AS balance
    FROM credits_ledger
    WHERE member_id = :member_id
""")

_INSERT_LEDGER_SQL = text("""
    INSERT INTO credits_ledger
        (member_id, delta, source, note, course_id, product_id, reference_id)
    VALUES
        (:member_id, :delta, :source, :note, :course_id, :product_id, :reference_id)
    RETURNING id, member_id, delta, source, note,
              course_id, product_id, reference_id, created_at
""")

_LIST_LEDGER_SQL = text("""
    SELECT id, member_id, delta, source, note,
           course_id, product_id, reference_id, created_at
    FROM credits_ledger
    WHERE member_id = :member_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_course(row: object) -> Course:
    return Course(
        id=row.id,  # type: ignore[attr-defined]
        name=row.name,  # type: ignore[attr-defined]
        capacity=row.capacity or 0,  # type: ignore[attr-defined]
        starts_at=row.starts_at,  # type: ignore[attr-defined]
    )


def _row_to_enrollment(row: object) -> Enrollment:
    return Enrollment(
        course_id=row.course_id,  # type: ignore[attr-defined]
        member_id=row.member_id,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_roster_entry(row: object) -> RosterEntry:
    return RosterEntry(
        member_id=row.member_id,  # type: ignore[attr-defined]
        name=display_name(
            row.member_id,  # type: ignore[attr-defined]
            row.full_name,  # type: ignore[attr-defined]
            row.first_name,  # type: ignore[attr-defined]
            row.last_name,  # type: ignore[attr-defined]
        ),
        email=row.email or "",  # type: ignore[attr-defined]
    )


def _row_to_ledger(row: object) -> CreditLedgerEntry:
    return CreditLedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        member_id=row.member_id,  # type: ignore[attr-defined]
        delta=row.delta,  # type: ignore[attr-defined]
        source=row.source,  # type: ignore[attr-defined]
        note=row.note,  # type: ignore[attr-defined]
        course_id=row.course_id,  # type: ignore[attr-defined]
        product_id=row.product_id,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class EnrollmentRepository:
    """Concrete repository for courses, enrollments and rosters."""

    async def get_course(self, db: AsyncSession, course_id: str) -> Course | None:
        result = await db.execute(_GET_COURSE_SQL, {"course_id": course_id})
        row = result.fetchone()
        return _row_to_course(row) if row else None

    async def lock_course(self, db: AsyncSession, course_id: str) -> Course | None:
        result = await db.execute(_LOCK_COURSE_SQL, {"course_id": course_id})
        row = result.fetchone()
        return _row_to_course(row) if row else None

    async def get_enrollment(
        self, db: AsyncSession, course_id: str, member_id: str
    ) -> Enrollment | None:
        result = await db.execute(
            _GET_ENROLLMENT_SQL, {"course_id": course_id, "member_id": member_id}
        )
        row = result.fetchone()
        return _row_to_enrollment(row) if row else None

    async def count_enrollments(self, db: AsyncSession, course_id: str) -> int:
        result = await db.execute(_COUNT_ENROLLMENTS_SQL, {"course_id": course_id})
        return int(result.scalar_one())

    async def insert_enrollment(
        self, db: AsyncSession, course_id: str, member_id: str
    ) -> Enrollment | None:
        """Insert only if the course still has a free place and the pair is new.

        Returns None when either condition fails.
        """
        result = await db.execute(
            _INSERT_ENROLLMENT_SQL, {"course_id": course_id, "member_id": member_id}
        )
        row = result.fetchone()
        return _row_to_enrollment(row) if row else None

    async def delete_enrollment(
        self, db: AsyncSession, course_id: str, member_id: str
    ) -> int:
        result = await db.execute(
            _DELETE_ENROLLMENT_SQL, {"course_id": course_id, "member_id": member_id}
        )
        return int(result.rowcount or 0)  # type: ignore[attr-defined]

    async def list_roster(self, db: AsyncSession, course_id: str) -> list[RosterEntry]:
        result = await db.execute(_ROSTER_SQL, {"course_id": course_id})
        return [_row_to_roster_entry(row) for row in result.fetchall()]


class CreditLedgerRepository:
    """Concrete repository for the append-only credits ledger."""

    async def lock_member(self, db: AsyncSession, member_id: str) -> None:
        await db.execute(_LOCK_MEMBER_SQL, {"lock_key": f"credits:{member_id}"})

    async def get_balance(self, db: AsyncSession, member_id: str) -> int:
        result = await db.execute(_BALANCE_SQL, {"member_id": member_id})
        return int(result.scalar_one())

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
    ) -> CreditLedgerEntry:
        result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "member_id": member_id,
                "delta": delta,
                "source": source,
                "note": note,
                "course_id": course_id,
                "product_id": product_id,
                "reference_id": reference_id,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return _row_to_ledger(row)

    async def list_entries(
        self,
        db: AsyncSession,
        member_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[CreditLedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {"member_id": member_id, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_ledger(row) for row in result.fetchall()]
