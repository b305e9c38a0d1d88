import pytest

from school_earnings.models import ControllerEarningsConfig
from school_earnings.schemas.earnings import EarningsParams
from school_earnings.services.earnings import EarningsCalculator, EarningsCalculationError
from school_earnings.services.earnings.ledger_reader import LedgerReader
from school_earnings.services.earnings.rules import InvalidYearMonthError

from tests.conftest import MONTH, SCHOOL_ID, TODAY


def make_calculator(session, session_factory, year_month=MONTH, school_id=SCHOOL_ID):
    return EarningsCalculator(
        session,
        year_month,
        school_id=school_id,
        session_factory=session_factory,
        today=TODAY,
    )


def by_controller(earnings):
    return {e.controller_id: e for e in earnings}


async def test_current_month_counts(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    earnings = by_controller(await calculator.calculate_controller_earnings())

    assert set(earnings) == {"C1", "C2"}
    c1 = earnings["C1"]
    assert c1.controller_name == "Amina"
    assert c1.month == MONTH
    assert c1.active_students == 6
    assert c1.active_paying_students == 4
    assert c1.not_yet_students == 1
    assert c1.leave_students_this_month == 1
    assert c1.ramadan_leave_students == 1
    assert c1.paid_this_month == 3
    assert c1.unpaid_active_this_month == 1
    assert c1.referenced_active_students == 2
    assert c1.linked_students == 2


async def test_current_month_money(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    c1 = by_controller(await calculator.calculate_controller_earnings())["C1"]

    assert c1.base_earnings == 240
    assert c1.leave_penalty == 0
    assert c1.unpaid_penalty == 80
    assert c1.referenced_bonus == 320
    assert c1.total_earnings == 480
    assert c1.target_earnings == 3000
    assert c1.achievement_percentage == pytest.approx(16.0)


async def test_free_packages_count_as_active_but_never_unpaid(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    earnings = by_controller(await calculator.calculate_controller_earnings())

    # Students 3 and 4 are on free packages with no ledger rows
    c1 = earnings["C1"]
    assert c1.active_students - c1.active_paying_students == 2
    assert c1.unpaid_active_this_month == 1
    assert c1.paid_this_month + c1.unpaid_active_this_month == c1.active_paying_students

    # Student 25 is free and paid: not paying, not referenced
    c2 = earnings["C2"]
    assert c2.active_students == 6
    assert c2.active_paying_students == 5
    assert c2.paid_this_month == 4
    assert c2.unpaid_active_this_month == 1


async def test_referral_window_includes_first_and_last_day_only(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    c1 = by_controller(await calculator.calculate_controller_earnings())["C1"]

    # 21 (Mar 1 00:00) and 22 (Mar 31 18:00) count; 23 (Feb 28) and 24 (Apr 1) do not
    assert c1.referenced_active_students == 2


async def test_team_fields_use_single_default_team(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    earnings = await calculator.calculate_controller_earnings(EarningsParams(team_id=7))

    assert {e.team_id for e in earnings} == {1}
    assert {e.team_name for e in earnings} == {"Default Team"}
    assert {e.team_leader for e in earnings} == {"System"}


async def test_rows_ordered_by_controller_name(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    earnings = await calculator.calculate_controller_earnings()
    assert [e.controller_name for e in earnings] == ["Amina", "Bilal"]


async def test_controller_filter_is_trimmed_and_case_insensitive(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    earnings = await calculator.calculate_controller_earnings(
        EarningsParams(controller_id="  c1 ")
    )
    assert [e.controller_id for e in earnings] == ["C1"]


async def test_school_scope(seeded, session_factory):
    scoped = make_calculator(seeded, session_factory)
    unscoped = make_calculator(seeded, session_factory, school_id=None)

    scoped_c1 = by_controller(await scoped.calculate_controller_earnings())["C1"]
    unscoped_c1 = by_controller(await unscoped.calculate_controller_earnings())["C1"]

    assert scoped_c1.active_students == 6
    # Student 31 belongs to another school
    assert unscoped_c1.active_students == 7


async def test_blank_controller_codes_are_ignored(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory, school_id=None)
    earnings = await calculator.calculate_controller_earnings()
    assert {e.controller_id for e in earnings} == {"C1", "C2"}


async def test_previous_month_and_growth(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    earnings = by_controller(await calculator.calculate_controller_earnings())

    # February: 6 active x 40, student 10 unpaid, no referral bonus
    c1 = earnings["C1"]
    assert c1.previous_month_earnings == 160
    assert c1.growth_rate == pytest.approx(200.0)

    # February with no payments at all is negative, so there is no baseline
    c2 = earnings["C2"]
    assert c2.previous_month_earnings == -160
    assert c2.total_earnings == 160
    assert c2.growth_rate == 100


async def test_year_to_date_uses_any_paid_month_of_current_year(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    earnings = by_controller(await calculator.calculate_controller_earnings())

    assert earnings["C1"].year_to_date_earnings == 240
    assert earnings["C2"].year_to_date_earnings == 160


async def test_historical_figures_exclude_referral_bonus(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    c1 = by_controller(await calculator.calculate_controller_earnings())["C1"]

    # Intentional asymmetry: the current month carries the bonus, YTD does not
    assert c1.referenced_bonus > 0
    assert c1.year_to_date_earnings == c1.base_earnings


async def test_calculation_is_idempotent(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    first = await calculator.calculate_controller_earnings()
    second = await make_calculator(seeded, session_factory).calculate_controller_earnings()

    assert [e.model_dump() for e in first] == [e.model_dump() for e in second]
    assert [e.model_dump_json() for e in first] == [e.model_dump_json() for e in second]


async def test_history_failure_degrades_to_zero(seeded, session_factory, monkeypatch):
    async def broken_roster(self, controller_code, school_id=None):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(LedgerReader, "load_roster", broken_roster)

    calculator = make_calculator(seeded, session_factory)
    c1 = by_controller(await calculator.calculate_controller_earnings())["C1"]

    assert c1.total_earnings == 480
    assert c1.previous_month_earnings == 0
    assert c1.year_to_date_earnings == 0
    assert c1.growth_rate == 100


async def test_aggregate_failure_is_wrapped(seeded, session_factory, monkeypatch):
    async def broken_aggregates(self, window, school_id=None, controller_id=None):
        raise RuntimeError("syntax error at or near GROUP")

    monkeypatch.setattr(LedgerReader, "load_aggregates", broken_aggregates)

    calculator = make_calculator(seeded, session_factory)
    with pytest.raises(EarningsCalculationError) as exc_info:
        await calculator.calculate_controller_earnings()

    assert str(exc_info.value) == (
        "Failed to calculate controller earnings: syntax error at or near GROUP"
    )
    assert isinstance(exc_info.value.__cause__, RuntimeError)


async def test_config_is_resolved_once_per_calculator(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    first = await calculator.get_earnings_config()
    assert first.main_base_rate == 40

    seeded.add(ControllerEarningsConfig(
        main_base_rate=50,
        referral_base_rate=40,
        leave_penalty_multiplier=3,
        leave_threshold=5,
        unpaid_penalty_multiplier=2,
        referral_bonus_multiplier=4,
        target_earnings=2000,
        is_active=True,
        school_id=SCHOOL_ID,
    ))
    await seeded.commit()

    c1 = by_controller(await calculator.calculate_controller_earnings())["C1"]
    assert c1.base_earnings == 240
    assert await calculator.get_earnings_config() is first

    fresh = make_calculator(seeded, session_factory)
    c1 = by_controller(await fresh.calculate_controller_earnings())["C1"]
    assert c1.base_earnings == 300
    assert c1.target_earnings == 2000


async def test_empty_roster_returns_no_rows(session, session_factory):
    calculator = make_calculator(session, session_factory)
    assert await calculator.calculate_controller_earnings() == []


async def test_invalid_month_rejected_on_construction(session):
    with pytest.raises(InvalidYearMonthError):
        EarningsCalculator(session, "2026-13", school_id=SCHOOL_ID)


async def test_params_month_must_match_calculator(seeded, session_factory):
    calculator = make_calculator(seeded, session_factory)
    with pytest.raises(EarningsCalculationError):
        await calculator.calculate_controller_earnings(EarningsParams(year_month="2026-04"))


async def test_month_defaults_to_today(session):
    calculator = EarningsCalculator(session, school_id=SCHOOL_ID, today=TODAY)
    assert calculator.year_month == "2026-10"
