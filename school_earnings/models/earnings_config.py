"""Versioned controller earnings rate configuration, scoped per school."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from school_earnings.database import Base


class ControllerEarningsConfig(Base):
    """
    One version of a school's earnings policy.

    Several versions may exist per school; the active one is the newest by
    effective date with is_active set. Creating a new version deactivates the
    previous ones.
    """
    __tablename__ = "controllerearningsconfig"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Rates
    main_base_rate: Mapped[Decimal] = mapped_column(
        "mainBaseRate",
        Numeric(10, 2),
        nullable=False,
        comment="Amount per active student per month"
    )
    referral_base_rate: Mapped[Decimal] = mapped_column(
        "referralBaseRate",
        Numeric(10, 2),
        nullable=False,
        comment="Base amount per referred student"
    )
    leave_penalty_multiplier: Mapped[Decimal] = mapped_column(
        "leavePenaltyMultiplier", Numeric(6, 2), nullable=False
    )
    leave_threshold: Mapped[int] = mapped_column(
        "leaveThreshold",
        Integer,
        nullable=False,
        comment="Leave students tolerated before the penalty applies"
    )
    unpaid_penalty_multiplier: Mapped[Decimal] = mapped_column(
        "unpaidPenaltyMultiplier", Numeric(6, 2), nullable=False
    )
    referral_bonus_multiplier: Mapped[Decimal] = mapped_column(
        "referralBonusMultiplier", Numeric(6, 2), nullable=False
    )
    target_earnings: Mapped[Decimal] = mapped_column(
        "targetEarnings",
        Numeric(12, 2),
        nullable=False,
        comment="Monthly earnings goal"
    )

    # Versioning
    effective_from: Mapped[datetime] = mapped_column(
        "effectiveFrom",
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    is_active: Mapped[bool] = mapped_column("isActive", Boolean, default=True, nullable=False)

    school_id: Mapped[Optional[str]] = mapped_column("schoolId", String(64), nullable=True, index=True)
    admin_id: Mapped[Optional[str]] = mapped_column("adminId", String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<ControllerEarningsConfig {self.id} school={self.school_id} active={self.is_active}>"
