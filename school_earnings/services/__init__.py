# Services module
from school_earnings.services.earnings_config_service import EarningsConfigService

__all__ = [
    "EarningsConfigService",
]
