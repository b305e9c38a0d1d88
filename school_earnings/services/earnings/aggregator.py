"""Per-controller aggregation of student counts."""

from dataclasses import dataclass
from typing import Iterable, Collection, Optional

from school_earnings.services.earnings.ledger_reader import RawAggregateRow, RawRowError
from school_earnings.services.earnings.rules import (
    MonthWindow,
    StudentSnapshot,
    is_active,
    is_active_paying,
    is_leave_in_window,
    is_linked,
    is_not_yet,
    is_ramadan_leave,
    is_referral_candidate,
)


@dataclass(frozen=True)
class StudentCounts:
    """The nine semantic buckets one controller is paid on."""
    active_students: int = 0
    active_paying_students: int = 0
    not_yet_students: int = 0
    leave_students_this_month: int = 0
    ramadan_leave_students: int = 0
    paid_this_month: int = 0
    unpaid_active_this_month: int = 0
    referenced_active_students: int = 0
    linked_students: int = 0


def counts_from_raw(row: RawAggregateRow) -> StudentCounts:
    """
    Normalize a raw aggregate row into semantic counts.

    The paying subset must fit inside the active set, and every paying
    student is either paid or unpaid for the month.
    """
    if row.active_paying_students > row.active_students:
        raise RawRowError(
            f"Controller {row.controller_code}: {row.active_paying_students} paying students "
            f"exceed {row.active_students} active students"
        )
    if row.paid_this_month + row.unpaid_active_this_month != row.active_paying_students:
        raise RawRowError(
            f"Controller {row.controller_code}: paid ({row.paid_this_month}) + unpaid "
            f"({row.unpaid_active_this_month}) != paying ({row.active_paying_students})"
        )

    return StudentCounts(
        active_students=row.active_students,
        active_paying_students=row.active_paying_students,
        not_yet_students=row.not_yet_students,
        leave_students_this_month=row.leave_students_this_month,
        ramadan_leave_students=row.ramadan_leave_students,
        paid_this_month=row.paid_this_month,
        unpaid_active_this_month=row.unpaid_active_this_month,
        referenced_active_students=row.referenced_active_students,
        linked_students=row.linked_students,
    )


def count_students(
    students: Iterable[StudentSnapshot],
    paid_ids: Collection[int],
    window: MonthWindow,
    referred: Iterable[StudentSnapshot] = (),
    referred_paid_ids: Optional[Collection[int]] = None,
) -> StudentCounts:
    """
    Apply the counting rules to an in-memory roster.

    Args:
        students: The controller's own roster
        paid_ids: Student ids with a qualifying ledger row in the window
        window: Window for leave exits and referral registrations
        referred: Students whose `refer` code names this controller
        referred_paid_ids: Paid ids among `referred`; None means use `paid_ids`
    """
    students = list(students)
    paid_ids = set(paid_ids)
    referred_paid = paid_ids if referred_paid_ids is None else set(referred_paid_ids)

    paying = [s for s in students if is_active_paying(s)]
    paid = sum(1 for s in paying if s.id in paid_ids)

    return StudentCounts(
        active_students=sum(1 for s in students if is_active(s)),
        active_paying_students=len(paying),
        not_yet_students=sum(1 for s in students if is_not_yet(s)),
        leave_students_this_month=sum(1 for s in students if is_leave_in_window(s, window)),
        ramadan_leave_students=sum(1 for s in students if is_ramadan_leave(s)),
        paid_this_month=paid,
        unpaid_active_this_month=len(paying) - paid,
        referenced_active_students=sum(
            1 for s in referred
            if is_referral_candidate(s, window) and s.id in referred_paid
        ),
        linked_students=sum(1 for s in students if is_linked(s)),
    )
