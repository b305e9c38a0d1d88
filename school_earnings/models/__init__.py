"""ORM models. Importing this package registers every table on Base.metadata."""
from school_earnings.models.school import School
from school_earnings.models.student import Student, Controller
from school_earnings.models.payment import MonthPayment
from school_earnings.models.earnings_config import ControllerEarningsConfig
from school_earnings.models.audit_log import AuditLog

__all__ = [
    "School",
    "Student",
    "Controller",
    "MonthPayment",
    "ControllerEarningsConfig",
    "AuditLog",
]
