"""
Roster & Ledger Reader

The only component that reads the bulk roster and payment tables. The
current-month figures come from one grouped query per month window; the
historical comparator uses the narrow per-controller reads below it.
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, Iterable, List, Optional, Sequence

from sqlalchemy import select, func, case, distinct, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from school_earnings.models.payment import MonthPayment
from school_earnings.models.student import Student, Controller
from school_earnings.services.earnings.rules import (
    MonthWindow,
    StudentSnapshot,
    active_clause,
    active_paying_clause,
    in_window_clause,
    leave_in_window_clause,
    linked_clause,
    paid_in_month_exists,
    qualifying_payment_clause,
    NOT_YET,
    RAMADAN_LEAVE,
)

logger = logging.getLogger(__name__)


class RawRowError(ValueError):
    """Raised when an aggregate row carries a missing or non-integral count."""
    pass


def _parse_count(row: Any, name: str) -> int:
    value = getattr(row, name, None)
    if value is None:
        raise RawRowError(f"Aggregate row is missing count {name!r}")
    if isinstance(value, bool):
        raise RawRowError(f"Count {name!r} is not an integer: {value!r}")
    if isinstance(value, int):
        count = value
    else:
        try:
            as_float = float(value)
        except (TypeError, ValueError):
            raise RawRowError(f"Count {name!r} is not a number: {value!r}")
        if as_float != as_float or not as_float.is_integer():
            raise RawRowError(f"Count {name!r} is not an integer: {value!r}")
        count = int(as_float)
    if count < 0:
        raise RawRowError(f"Count {name!r} is negative: {count}")
    return count


@dataclass(frozen=True)
class RawAggregateRow:
    """One controller's raw counts as returned by the grouped query."""
    controller_code: str
    controller_name: Optional[str]
    active_students: int
    active_paying_students: int
    not_yet_students: int
    leave_students_this_month: int
    ramadan_leave_students: int
    paid_this_month: int
    unpaid_active_this_month: int
    referenced_active_students: int
    linked_students: int

    @classmethod
    def count_names(cls) -> List[str]:
        return [f.name for f in fields(cls) if f.name not in ("controller_code", "controller_name")]

    @classmethod
    def from_row(cls, row: Any) -> "RawAggregateRow":
        """Parse a result row strictly; counts are never coerced from NULL."""
        code = getattr(row, "controller_code", None)
        if code is None or not str(code).strip():
            raise RawRowError("Aggregate row has no controller code")
        name = getattr(row, "controller_name", None)
        counts = {count: _parse_count(row, count) for count in cls.count_names()}
        return cls(controller_code=str(code), controller_name=name, **counts)


class LedgerReader:
    """Reads roster and payment-ledger data for earnings calculations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================================================
    # Current month: one grouped query
    # ========================================================================

    def build_aggregate_query(
        self,
        window: MonthWindow,
        school_id: Optional[str] = None,
        controller_id: Optional[str] = None,
    ):
        """Build the grouped per-controller query for one month window."""
        student = Student
        referred = aliased(Student, name="referred")

        def count_where(condition):
            return func.count(distinct(case((condition, student.id))))

        referenced_filters = [
            active_paying_clause(referred),
            referred.refer == student.controller_code,
            referred.refer.is_not(None),
            func.trim(referred.refer) != "",
            in_window_clause(referred.registration_date, window),
            paid_in_month_exists(referred, window.year_month),
        ]
        if school_id:
            referenced_filters.append(referred.school_id == school_id)

        referenced_count = (
            select(func.count(distinct(referred.id)))
            .where(*referenced_filters)
            .correlate(student)
            .scalar_subquery()
        )

        paid = paid_in_month_exists(student, window.year_month)

        controller_join = Controller.code == student.controller_code
        if school_id:
            controller_join = and_(controller_join, Controller.school_id == school_id)

        query = (
            select(
                student.controller_code.label("controller_code"),
                Controller.name.label("controller_name"),
                count_where(active_clause(student)).label("active_students"),
                count_where(active_paying_clause(student)).label("active_paying_students"),
                count_where(student.status == NOT_YET).label("not_yet_students"),
                count_where(leave_in_window_clause(student, window)).label("leave_students_this_month"),
                count_where(student.status == RAMADAN_LEAVE).label("ramadan_leave_students"),
                count_where(and_(active_paying_clause(student), paid)).label("paid_this_month"),
                count_where(and_(active_paying_clause(student), ~paid)).label("unpaid_active_this_month"),
                referenced_count.label("referenced_active_students"),
                count_where(linked_clause(student)).label("linked_students"),
            )
            .select_from(student)
            .outerjoin(Controller, controller_join)
            .where(
                student.controller_code.is_not(None),
                func.trim(student.controller_code) != "",
            )
        )

        if school_id:
            query = query.where(student.school_id == school_id)

        if controller_id:
            query = query.where(
                func.lower(func.trim(student.controller_code)) == controller_id.strip().lower()
            )

        return (
            query
            .group_by(student.controller_code, Controller.name)
            .order_by(Controller.name, student.controller_code)
        )

    async def load_aggregates(
        self,
        window: MonthWindow,
        school_id: Optional[str] = None,
        controller_id: Optional[str] = None,
    ) -> List[RawAggregateRow]:
        """
        Run the grouped query and parse every row.

        Args:
            window: Calendar month being reported
            school_id: Tenant scope
            controller_id: Narrow to one controller code (trimmed, case-insensitive)

        Returns:
            One RawAggregateRow per controller
        """
        query = self.build_aggregate_query(window, school_id, controller_id)
        result = await self.db.execute(query)
        rows = [RawAggregateRow.from_row(row) for row in result.all()]

        logger.debug(
            f"Loaded aggregates for {len(rows)} controllers "
            f"(month={window.year_month}, school={school_id}, controller={controller_id})"
        )
        return rows

    # ========================================================================
    # Historical lookups: per-controller roster + ledger
    # ========================================================================

    async def load_roster(
        self,
        controller_code: str,
        school_id: Optional[str] = None,
    ) -> List[StudentSnapshot]:
        """Students whose controller-of-record is exactly `controller_code`."""
        query = select(
            Student.id,
            Student.status,
            Student.exit_date,
            Student.package,
            Student.registration_date,
        ).where(Student.controller_code == controller_code)

        if school_id:
            query = query.where(Student.school_id == school_id)

        result = await self.db.execute(query)
        return [
            StudentSnapshot(
                id=row.id,
                status=row.status,
                package=row.package,
                exit_date=row.exit_date,
                registration_date=row.registration_date,
            )
            for row in result.all()
        ]

    async def load_paid_student_ids(
        self,
        student_ids: Iterable[int],
        month: Optional[str] = None,
        month_prefix: Optional[str] = None,
        school_id: Optional[str] = None,
    ) -> set:
        """
        Ids among `student_ids` with a qualifying ledger row.

        Exactly one of `month` (a single YYYY-MM) or `month_prefix`
        (e.g. "2026-") selects the ledger window.
        """
        if (month is None) == (month_prefix is None):
            raise ValueError("Pass exactly one of month or month_prefix")

        ids: Sequence[int] = list(student_ids)
        if not ids:
            return set()

        query = select(MonthPayment.student_id).distinct().where(
            MonthPayment.student_id.in_(ids),
            qualifying_payment_clause(),
        )
        if month is not None:
            query = query.where(MonthPayment.month == month)
        else:
            query = query.where(MonthPayment.month.startswith(month_prefix, autoescape=True))

        if school_id:
            query = query.where(MonthPayment.school_id == school_id)

        result = await self.db.execute(query)
        return set(result.scalars().all())
