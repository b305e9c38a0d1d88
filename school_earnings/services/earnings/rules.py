"""
Month windows and student counting rules for controller earnings.

Each rule exists twice: as a predicate over a StudentSnapshot (used when a
controller's roster is evaluated in memory) and as a SQLAlchemy clause (used
by the grouped aggregate query). Both forms must agree.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import and_, or_, func, exists, select
from sqlalchemy.sql.elements import ColumnElement

from school_earnings.models.payment import MonthPayment


# Status vocabulary of the roster (exact, case-sensitive)
ACTIVE = "Active"
NOT_YET = "Not Yet"
LEAVE = "Leave"
RAMADAN_LEAVE = "Ramadan Leave"

# Packages that never pay: counted for base earnings, never for unpaid penalty
FREE_PACKAGES = ("0 Fee", "0 Fee 6 days", "0 Fee 3 days")

# Compared after upper-casing the ledger value
PAID_STATUSES = ("PAID", "COMPLETE", "SUCCESS")

_YEAR_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


class InvalidYearMonthError(ValueError):
    """Raised when a year-month is not a valid YYYY-MM string."""
    pass


def parse_year_month(value: Optional[str], today: Optional[date] = None) -> str:
    """
    Validate a YYYY-MM string.

    Args:
        value: Year-month to validate; None or blank means the current month
        today: Reference date for the default

    Returns:
        The normalized year-month

    Raises:
        InvalidYearMonthError: If the value is malformed or the month is out of range
    """
    if value is None or not value.strip():
        today = today or date.today()
        return f"{today.year:04d}-{today.month:02d}"

    match = _YEAR_MONTH_RE.match(value.strip())
    if not match:
        raise InvalidYearMonthError(f"Invalid year-month {value!r}, expected YYYY-MM")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise InvalidYearMonthError(f"Invalid year-month {value!r}, month must be 01-12")
    return f"{year:04d}-{month:02d}"


@dataclass(frozen=True)
class MonthWindow:
    """
    A calendar window [start, end).

    `end` is exclusive midnight, so every timestamp on the last calendar day
    still falls inside the window.
    """
    year_month: str
    start: datetime
    end: datetime

    @classmethod
    def for_month(cls, year_month: str) -> "MonthWindow":
        year_month = parse_year_month(year_month)
        year, month = (int(part) for part in year_month.split("-"))
        start = datetime(year, month, 1)
        return cls(year_month=year_month, start=start, end=start + relativedelta(months=1))

    @classmethod
    def for_year(cls, year: int) -> "MonthWindow":
        start = datetime(year, 1, 1)
        return cls(year_month=f"{year:04d}-01", start=start, end=start + relativedelta(years=1))

    @property
    def first_day(self) -> date:
        return self.start.date()

    @property
    def last_day(self) -> date:
        return (self.end - relativedelta(days=1)).date()

    def previous(self) -> "MonthWindow":
        """The calendar month before this window's first month."""
        start = self.start - relativedelta(months=1)
        return MonthWindow.for_month(f"{start.year:04d}-{start.month:02d}")

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        if not isinstance(moment, datetime):
            moment = datetime(moment.year, moment.month, moment.day)
        if moment.tzinfo is not None:
            moment = moment.replace(tzinfo=None)
        return self.start <= moment < self.end


@dataclass(frozen=True)
class StudentSnapshot:
    """The roster fields the earnings rules look at."""
    id: int
    status: Optional[str]
    package: Optional[str] = None
    exit_date: Optional[datetime] = None
    registration_date: Optional[datetime] = None
    refer: Optional[str] = None
    chat_id: Optional[str] = None


# ==================== In-memory predicates ====================

def is_active(student: StudentSnapshot) -> bool:
    return student.status == ACTIVE


def is_not_yet(student: StudentSnapshot) -> bool:
    return student.status == NOT_YET


def is_ramadan_leave(student: StudentSnapshot) -> bool:
    return student.status == RAMADAN_LEAVE


def is_paying_package(package: Optional[str]) -> bool:
    """A missing package counts as paying; only the exact free variants do not."""
    return package is None or package not in FREE_PACKAGES


def is_active_paying(student: StudentSnapshot) -> bool:
    return is_active(student) and is_paying_package(student.package)


def is_leave_in_window(student: StudentSnapshot, window: MonthWindow) -> bool:
    return student.status == LEAVE and window.contains(student.exit_date)


def is_linked(student: StudentSnapshot) -> bool:
    """Active or not-yet students with a non-blank chat id."""
    if student.status not in (ACTIVE, NOT_YET):
        return False
    return bool(student.chat_id and student.chat_id.strip())


def is_referral_candidate(student: StudentSnapshot, window: MonthWindow) -> bool:
    """Active, paying package and registered inside the window. Payment is checked separately."""
    return (
        is_active_paying(student)
        and bool(student.refer and student.refer.strip())
        and window.contains(student.registration_date)
    )


def is_qualifying_payment(payment_status: Optional[str], is_free_month: Optional[bool]) -> bool:
    if is_free_month:
        return True
    return bool(payment_status) and payment_status.upper() in PAID_STATUSES


# ==================== SQL clauses ====================

def active_clause(student) -> ColumnElement[bool]:
    return student.status == ACTIVE


def paying_package_clause(student) -> ColumnElement[bool]:
    return or_(student.package.is_(None), student.package.not_in(FREE_PACKAGES))


def active_paying_clause(student) -> ColumnElement[bool]:
    return and_(active_clause(student), paying_package_clause(student))


def in_window_clause(column, window: MonthWindow) -> ColumnElement[bool]:
    return and_(column.is_not(None), column >= window.start, column < window.end)


def leave_in_window_clause(student, window: MonthWindow) -> ColumnElement[bool]:
    return and_(student.status == LEAVE, in_window_clause(student.exit_date, window))


def linked_clause(student) -> ColumnElement[bool]:
    return and_(
        student.status.in_((ACTIVE, NOT_YET)),
        student.chat_id.is_not(None),
        func.trim(student.chat_id) != "",
    )


def qualifying_payment_clause() -> ColumnElement[bool]:
    return or_(
        func.upper(MonthPayment.payment_status).in_(PAID_STATUSES),
        MonthPayment.is_free_month.is_(True),
    )


def paid_in_month_exists(student, year_month: str) -> ColumnElement[bool]:
    """Correlated EXISTS: the student has a qualifying ledger row for the month."""
    return exists(
        select(MonthPayment.id).where(
            MonthPayment.student_id == student.id,
            MonthPayment.month == year_month,
            qualifying_payment_clause(),
        )
    )
