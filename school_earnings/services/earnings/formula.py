"""
Earnings Formula Engine

    base      = active x mainBaseRate
    leave     = max(leave - leaveThreshold, 0) x leavePenaltyMultiplier x mainBaseRate
    unpaid    = unpaid x unpaidPenaltyMultiplier x mainBaseRate
    referral  = referenced x referralBonusMultiplier x referralBaseRate
    total     = base - leave - unpaid + referral

Totals may be negative. Nothing is rounded here.
"""

from dataclasses import dataclass

from school_earnings.services.earnings.aggregator import StudentCounts
from school_earnings.services.earnings_config_service import EarningsConfig


@dataclass(frozen=True)
class EarningsBreakdown:
    base_earnings: float
    leave_penalty: float
    unpaid_penalty: float
    referenced_bonus: float
    total_earnings: float


def calculate_breakdown(
    counts: StudentCounts,
    config: EarningsConfig,
    include_referral_bonus: bool = True,
) -> EarningsBreakdown:
    """
    Apply the configured rates to one controller's counts.

    Historical figures pass include_referral_bonus=False: previous-month and
    year-to-date earnings are base minus penalties only.
    """
    base = counts.active_students * config.main_base_rate
    excess_leave = max(counts.leave_students_this_month - config.leave_threshold, 0)
    leave_penalty = excess_leave * config.leave_penalty_multiplier * config.main_base_rate
    unpaid_penalty = (
        counts.unpaid_active_this_month * config.unpaid_penalty_multiplier * config.main_base_rate
    )
    referenced_bonus = 0.0
    if include_referral_bonus:
        referenced_bonus = (
            counts.referenced_active_students
            * config.referral_bonus_multiplier
            * config.referral_base_rate
        )

    return EarningsBreakdown(
        base_earnings=base,
        leave_penalty=leave_penalty,
        unpaid_penalty=unpaid_penalty,
        referenced_bonus=referenced_bonus,
        total_earnings=base - leave_penalty - unpaid_penalty + referenced_bonus,
    )


def achievement_percentage(total_earnings: float, target_earnings: float) -> float:
    if target_earnings > 0:
        return (total_earnings / target_earnings) * 100
    return 0.0


def growth_rate(total_earnings: float, previous_earnings: float) -> float:
    """Month-over-month growth; with no baseline any positive total reads as +100%."""
    if previous_earnings > 0:
        return ((total_earnings - previous_earnings) / previous_earnings) * 100
    return 100.0 if total_earnings > 0 else 0.0
