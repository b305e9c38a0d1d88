"""Pydantic schemas for controller earnings and their rate configuration."""
from datetime import datetime
from typing import Optional, List

from pydantic import Field

from school_earnings.schemas.base import BaseResponseSchema, BaseCreateSchema


# ==================== Earnings Config Schemas ====================

class EarningsConfigInput(BaseCreateSchema):
    """Schema for creating or replacing an earnings configuration."""
    main_base_rate: float = Field(..., ge=0, le=1000)
    referral_base_rate: float = Field(..., ge=0, le=1000)
    leave_penalty_multiplier: float = Field(..., ge=0, le=10)
    leave_threshold: int = Field(..., ge=0, le=20)
    unpaid_penalty_multiplier: float = Field(..., ge=0, le=10)
    referral_bonus_multiplier: float = Field(..., ge=0, le=10)
    target_earnings: float = Field(..., ge=0, le=10000)
    effective_from: Optional[datetime] = None


class EarningsConfigResponse(BaseResponseSchema):
    """Response schema for one stored configuration version."""
    id: int
    main_base_rate: float
    referral_base_rate: float
    leave_penalty_multiplier: float
    leave_threshold: int
    unpaid_penalty_multiplier: float
    referral_bonus_multiplier: float
    target_earnings: float
    effective_from: datetime
    is_active: bool
    school_id: Optional[str] = None
    admin_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class EarningsConfigHistoryResponse(BaseResponseSchema):
    """Current configuration plus every version, newest first."""
    current: Optional[EarningsConfigResponse] = None
    history: List[EarningsConfigResponse] = []


# ==================== Earnings Schemas ====================

class EarningsParams(BaseCreateSchema):
    """Filters for an earnings calculation."""
    year_month: Optional[str] = Field(None, description="YYYY-MM, defaults to the current month")
    controller_id: Optional[str] = Field(None, description="Controller code, matched case-insensitively")
    team_id: Optional[int] = Field(None, description="Accepted but not applied: all controllers share one team")


class ControllerEarnings(BaseResponseSchema):
    """One controller's earnings for one month."""
    controller_id: str
    controller_name: str
    team_id: int
    team_name: str
    team_leader: str
    month: str

    # Student counts
    active_students: int
    active_paying_students: int
    not_yet_students: int
    leave_students_this_month: int
    ramadan_leave_students: int
    paid_this_month: int
    unpaid_active_this_month: int
    referenced_active_students: int
    linked_students: int

    # Money
    base_earnings: float
    leave_penalty: float
    unpaid_penalty: float
    referenced_bonus: float
    total_earnings: float

    # Target and trend
    target_earnings: float
    achievement_percentage: float
    growth_rate: float
    previous_month_earnings: float
    year_to_date_earnings: float


class EarningsSummary(BaseResponseSchema):
    """Totals across every controller in a report."""
    total_controllers: int
    total_earnings: float
    total_active_students: int
    total_paid_students: int
    average_earnings: float


class TeamStats(BaseResponseSchema):
    """Per-team rollup of controller earnings."""
    team_id: int
    team_name: str
    team_leader: str
    controllers: List[ControllerEarnings] = []
    total_earnings: float = 0
    total_active_students: int = 0
    total_paid_students: int = 0


class ControllerEarningsReport(BaseResponseSchema):
    """Response for the controller earnings endpoint."""
    message: str = "Controller earnings retrieved successfully"
    earnings: List[ControllerEarnings]
    summary: EarningsSummary
    team_stats: List[TeamStats]
