"""
Controller Earnings Calculator

Produces one ControllerEarnings row per controller for a month:

1. Resolve the school's earnings policy (once per calculator)
2. Load every controller's counts with one grouped query
3. Apply the formula to the current month
4. Enrich each row with previous-month and year-to-date figures,
   all controllers concurrently
"""

import asyncio
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from school_earnings.config import settings
from school_earnings.schemas.earnings import ControllerEarnings, EarningsParams
from school_earnings.services.earnings.aggregator import StudentCounts, counts_from_raw
from school_earnings.services.earnings.formula import (
    achievement_percentage,
    calculate_breakdown,
    growth_rate,
)
from school_earnings.services.earnings.history import HistoricalComparator
from school_earnings.services.earnings.ledger_reader import LedgerReader, RawAggregateRow
from school_earnings.services.earnings.rules import MonthWindow, parse_year_month
from school_earnings.services.earnings_config_service import (
    EarningsConfig,
    EarningsConfigService,
)

logger = logging.getLogger(__name__)

DEFAULT_TEAM_ID = 1


class EarningsCalculationError(Exception):
    """Raised when the current-month calculation cannot be completed."""
    pass


class EarningsCalculator:
    """
    Earnings calculator bound to one month and one school.

    The policy is resolved on first use and reused for the lifetime of the
    instance, historical lookups included. Build a new calculator to pick up
    configuration changes.
    """

    def __init__(
        self,
        db: AsyncSession,
        year_month: Optional[str] = None,
        school_id: Optional[str] = None,
        *,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        config_service: Optional[EarningsConfigService] = None,
        today: Optional[date] = None,
    ):
        self.db = db
        self.today = today or date.today()
        self.year_month = parse_year_month(year_month, self.today)
        self.window = MonthWindow.for_month(self.year_month)
        self.school_id = school_id
        self.session_factory = session_factory or async_sessionmaker(
            db.bind, class_=AsyncSession, expire_on_commit=False
        )
        self.config_service = config_service or EarningsConfigService(db)
        self._config: Optional[EarningsConfig] = None

    async def get_earnings_config(self) -> EarningsConfig:
        if self._config is None:
            self._config = await self.config_service.get_earnings_config(self.school_id)
        return self._config

    async def calculate_controller_earnings(
        self,
        params: Optional[EarningsParams] = None,
    ) -> List[ControllerEarnings]:
        """
        Calculate earnings for every controller matching `params`.

        Raises:
            EarningsCalculationError: If the policy or the aggregate query
                fails. Historical lookups never raise; they report 0.
        """
        params = params or EarningsParams()
        try:
            if params.year_month and parse_year_month(params.year_month) != self.year_month:
                raise ValueError(
                    f"Calculator is bound to {self.year_month}, got {params.year_month}"
                )

            config = await self.get_earnings_config()
            rows = await LedgerReader(self.db).load_aggregates(
                self.window,
                school_id=self.school_id,
                controller_id=params.controller_id,
            )
            current = [(row, counts_from_raw(row)) for row in rows]

            history = HistoricalComparator(
                self.session_factory,
                config,
                school_id=self.school_id,
                today=self.today,
            )
            earnings = await asyncio.gather(
                *[self._build_row(row, counts, config, history) for row, counts in current]
            )
        except Exception as e:
            logger.exception(f"Failed to calculate controller earnings: {e}")
            raise EarningsCalculationError(f"Failed to calculate controller earnings: {e}") from e

        logger.info(
            f"Calculated earnings for {len(earnings)} controllers "
            f"(month={self.year_month}, school={self.school_id})"
        )
        return list(earnings)

    async def _history(
        self,
        controller_id: str,
        history: HistoricalComparator,
    ) -> tuple:
        if not settings.HISTORY_LOOKUPS_ENABLED:
            return 0.0, 0.0
        previous_month = self.window.previous().year_month
        previous, year_to_date = await asyncio.gather(
            history.get_previous_month_earnings(controller_id, previous_month),
            history.get_year_to_date_earnings(controller_id),
        )
        return previous, year_to_date

    async def _build_row(
        self,
        row: RawAggregateRow,
        counts: StudentCounts,
        config: EarningsConfig,
        history: HistoricalComparator,
    ) -> ControllerEarnings:
        breakdown = calculate_breakdown(counts, config)
        previous, year_to_date = await self._history(row.controller_code, history)

        return ControllerEarnings(
            controller_id=row.controller_code,
            controller_name=row.controller_name or row.controller_code,
            team_id=DEFAULT_TEAM_ID,
            team_name=settings.DEFAULT_TEAM_NAME,
            team_leader=settings.DEFAULT_TEAM_LEADER,
            month=self.year_month,
            active_students=counts.active_students,
            active_paying_students=counts.active_paying_students,
            not_yet_students=counts.not_yet_students,
            leave_students_this_month=counts.leave_students_this_month,
            ramadan_leave_students=counts.ramadan_leave_students,
            paid_this_month=counts.paid_this_month,
            unpaid_active_this_month=counts.unpaid_active_this_month,
            referenced_active_students=counts.referenced_active_students,
            linked_students=counts.linked_students,
            base_earnings=breakdown.base_earnings,
            leave_penalty=breakdown.leave_penalty,
            unpaid_penalty=breakdown.unpaid_penalty,
            referenced_bonus=breakdown.referenced_bonus,
            total_earnings=breakdown.total_earnings,
            target_earnings=config.target_earnings,
            achievement_percentage=achievement_percentage(
                breakdown.total_earnings, config.target_earnings
            ),
            growth_rate=growth_rate(breakdown.total_earnings, previous),
            previous_month_earnings=previous,
            year_to_date_earnings=year_to_date,
        )
