import os
import tempfile

# Settings are read at import time: point them at a throwaway SQLite file first.
_DB_DIR = tempfile.mkdtemp(prefix="school-earnings-tests-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(_DB_DIR, "test.db")

from datetime import date, datetime

import pytest

from school_earnings import models  # noqa: F401
from school_earnings.core.tenant_context import clear_school_cache
from school_earnings.database import Base, engine, async_session_factory
from school_earnings.models import Controller, MonthPayment, School, Student


SCHOOL_ID = "school-1"
OTHER_SCHOOL_ID = "school-2"
MONTH = "2026-03"
TODAY = date(2026, 10, 19)


@pytest.fixture
async def db_engine():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    clear_school_cache()
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_session_factory


@pytest.fixture
async def session(session_factory):
    async with session_factory() as db:
        yield db


def student(id, controller, status="Active", package="3 days", school=SCHOOL_ID, **kwargs):
    return Student(
        id=id,
        name=f"Student {id}",
        controller_code=controller,
        status=status,
        package=package,
        school_id=school,
        **kwargs,
    )


def payment(student_id, month=MONTH, status="Paid", free=False, school=SCHOOL_ID):
    return MonthPayment(
        student_id=student_id,
        month=month,
        payment_status=status,
        is_free_month=free,
        school_id=school,
    )


@pytest.fixture
async def seeded(session):
    """
    Two controllers of school-1 for March 2026.

    C1 (Amina): 6 active (2 on free packages), 1 unpaid paying student,
    1 leave exit on the last day of March, 2 qualifying referrals.
    C2 (Bilal): owns the referred students, 1 unpaid paying student.
    """
    session.add_all([
        School(id=SCHOOL_ID, slug="al-noor", name="Al Noor Academy"),
        School(id=OTHER_SCHOOL_ID, slug="other", name="Other School"),
        Controller(code="C1", name="Amina", school_id=SCHOOL_ID),
        Controller(code="C2", name="Bilal", school_id=SCHOOL_ID),
    ])

    session.add_all([
        # C1 roster
        student(1, "C1", chat_id="tg-1"),
        student(2, "C1", package=None),
        student(3, "C1", package="0 Fee"),
        student(4, "C1", package="0 Fee 3 days"),
        student(5, "C1", status="Not Yet", chat_id="12345"),
        student(6, "C1", status="Leave", exit_date=datetime(2026, 3, 31, 23, 0)),
        student(7, "C1", status="Leave", exit_date=datetime(2026, 2, 28, 9, 0)),
        student(8, "C1", status="Ramadan Leave"),
        student(9, "C1", package="5 days"),
        student(10, "C1", chat_id="   "),
        # C2 roster: students referred by C1
        student(21, "C2", refer="C1", registration_date=datetime(2026, 3, 1, 0, 0)),
        student(22, "C2", refer="C1", registration_date=datetime(2026, 3, 31, 18, 0)),
        student(23, "C2", refer="C1", registration_date=datetime(2026, 2, 28, 23, 59)),
        student(24, "C2", refer="C1", registration_date=datetime(2026, 4, 1, 0, 0)),
        student(25, "C2", refer="C1", package="0 Fee", registration_date=datetime(2026, 3, 10)),
        student(26, "C2", refer="C1", registration_date=datetime(2026, 3, 15)),
        # Excluded rows
        student(31, "C1", school=OTHER_SCHOOL_ID),
        student(32, "   "),
        student(33, None),
    ])

    session.add_all([
        # March
        payment(1, status="paid"),
        payment(9, status="pending", free=True),
        payment(10, status="PAID"),
        payment(2, status="pending"),
        payment(21, status="SUCCESS"),
        payment(22, status="Complete"),
        payment(23),
        payment(24),
        payment(25, free=True),
        # February
        payment(1, month="2026-02"),
        payment(2, month="2026-02"),
        payment(9, month="2026-02", status="success"),
    ])
    await session.commit()
    return session
