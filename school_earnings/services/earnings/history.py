"""
Historical Comparator

Re-derives a controller's earnings for the previous month and for the
year to date. Both figures are base minus penalties only (no referral
bonus) and degrade to 0 when a lookup fails.
"""

import asyncio
import logging
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from school_earnings.config import settings
from school_earnings.services.earnings.aggregator import count_students
from school_earnings.services.earnings.formula import calculate_breakdown
from school_earnings.services.earnings.ledger_reader import LedgerReader
from school_earnings.services.earnings.rules import MonthWindow, is_active_paying
from school_earnings.services.earnings_config_service import EarningsConfig

logger = logging.getLogger(__name__)


class HistoricalComparator:
    """
    Historical earnings lookups for one calculation.

    Every lookup opens its own session so that lookups for many
    controllers can run concurrently. At most `max_concurrent`
    lookups hold a session at once.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: EarningsConfig,
        school_id: Optional[str] = None,
        today: Optional[date] = None,
        max_concurrent: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.config = config
        self.school_id = school_id
        self.today = today or date.today()
        self.max_concurrent = max(1, max_concurrent or settings.HISTORY_MAX_CONCURRENCY)
        self._semaphore = asyncio.Semaphore(self.max_concurrent)

    async def get_previous_month_earnings(self, controller_id: str, month: str) -> float:
        """Earnings of `controller_id` for `month` (YYYY-MM); 0 on failure."""
        try:
            window = MonthWindow.for_month(month)
            return await self._window_earnings(controller_id, window, month=window.year_month)
        except Exception as e:
            logger.warning(
                f"Failed to calculate previous month earnings for {controller_id} ({month}): {e}"
            )
            return 0.0

    async def get_year_to_date_earnings(self, controller_id: str) -> float:
        """
        Earnings of `controller_id` over the current calendar year; 0 on failure.

        A paying student counts as paid when any month of the year has a
        qualifying ledger row.
        """
        year = self.today.year
        try:
            window = MonthWindow.for_year(year)
            return await self._window_earnings(controller_id, window, month_prefix=f"{year:04d}-")
        except Exception as e:
            logger.warning(f"Failed to calculate YTD earnings for {controller_id} ({year}): {e}")
            return 0.0

    async def _window_earnings(
        self,
        controller_id: str,
        window: MonthWindow,
        month: Optional[str] = None,
        month_prefix: Optional[str] = None,
    ) -> float:
        async with self._semaphore:
            async with self.session_factory() as session:
                reader = LedgerReader(session)
                roster = await reader.load_roster(controller_id, self.school_id)
                paid_ids = await reader.load_paid_student_ids(
                    (s.id for s in roster if is_active_paying(s)),
                    month=month,
                    month_prefix=month_prefix,
                    school_id=self.school_id,
                )

        counts = count_students(roster, paid_ids, window)
        breakdown = calculate_breakdown(counts, self.config, include_referral_bonus=False)
        return breakdown.total_earnings
