# Controller earnings engine
from school_earnings.services.earnings.calculator import EarningsCalculator, EarningsCalculationError
from school_earnings.services.earnings.report import build_report

__all__ = [
    "EarningsCalculator",
    "EarningsCalculationError",
    "build_report",
]
