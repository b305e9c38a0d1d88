"""
Earnings Configuration Service

Resolves and manages the versioned controller earnings policy of a school:
- Active policy lookup with a built-in default
- Version history
- New versions (previous ones are deactivated)
- In-place correction of a stored version
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from school_earnings.models.audit_log import AuditLog
from school_earnings.models.earnings_config import ControllerEarningsConfig
from school_earnings.schemas.earnings import EarningsConfigInput

logger = logging.getLogger(__name__)


class EarningsConfigNotFoundError(Exception):
    """Raised when a configuration version does not exist for the school."""
    pass


@dataclass(frozen=True)
class EarningsConfig:
    """A resolved earnings policy. Immutable once handed to a calculation."""
    main_base_rate: float
    referral_base_rate: float
    leave_penalty_multiplier: float
    leave_threshold: int
    unpaid_penalty_multiplier: float
    referral_bonus_multiplier: float
    target_earnings: float

    @classmethod
    def from_model(cls, row: ControllerEarningsConfig) -> "EarningsConfig":
        return cls(
            main_base_rate=float(row.main_base_rate),
            referral_base_rate=float(row.referral_base_rate),
            leave_penalty_multiplier=float(row.leave_penalty_multiplier),
            leave_threshold=int(row.leave_threshold),
            unpaid_penalty_multiplier=float(row.unpaid_penalty_multiplier),
            referral_bonus_multiplier=float(row.referral_bonus_multiplier),
            target_earnings=float(row.target_earnings),
        )

    def to_dict(self) -> dict:
        return asdict(self)


DEFAULT_EARNINGS_CONFIG = EarningsConfig(
    main_base_rate=40.0,
    referral_base_rate=40.0,
    leave_penalty_multiplier=3.0,
    leave_threshold=5,
    unpaid_penalty_multiplier=2.0,
    referral_bonus_multiplier=4.0,
    target_earnings=3000.0,
)

AUDIT_ACTION_CONFIG_UPDATED = "earnings_config_updated"


class EarningsConfigService:
    """Service for earnings configuration operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _active_query(self, school_id: Optional[str] = None):
        query = select(ControllerEarningsConfig).where(ControllerEarningsConfig.is_active.is_(True))
        if school_id:
            query = query.where(ControllerEarningsConfig.school_id == school_id)
        return query.order_by(
            ControllerEarningsConfig.effective_from.desc(),
            ControllerEarningsConfig.id.desc(),
        ).limit(1)

    # ========================================================================
    # Resolution
    # ========================================================================

    async def get_earnings_config(self, school_id: Optional[str] = None) -> EarningsConfig:
        """
        Resolve the policy to calculate with.

        The newest active version wins; a school without one gets
        DEFAULT_EARNINGS_CONFIG.
        """
        result = await self.db.execute(self._active_query(school_id))
        row = result.scalar_one_or_none()
        if row is None:
            logger.debug(f"No active earnings config for school {school_id}, using defaults")
            return DEFAULT_EARNINGS_CONFIG
        return EarningsConfig.from_model(row)

    async def get_current(self, school_id: str) -> Optional[ControllerEarningsConfig]:
        result = await self.db.execute(self._active_query(school_id))
        return result.scalar_one_or_none()

    async def list_history(self, school_id: str) -> List[ControllerEarningsConfig]:
        """Every version for the school, newest first."""
        result = await self.db.execute(
            select(ControllerEarningsConfig)
            .where(ControllerEarningsConfig.school_id == school_id)
            .order_by(
                ControllerEarningsConfig.effective_from.desc(),
                ControllerEarningsConfig.id.desc(),
            )
        )
        return list(result.scalars().all())

    # ========================================================================
    # Changes
    # ========================================================================

    async def create_config(
        self,
        school_id: str,
        data: EarningsConfigInput,
        admin_id: Optional[str] = None,
    ) -> ControllerEarningsConfig:
        """
        Store a new active version.

        Flow:
        1. Deactivate every active version of the school
        2. Insert the new version as active
        3. Record an audit entry (failures are logged, not raised)
        """
        await self.db.execute(
            update(ControllerEarningsConfig)
            .where(
                ControllerEarningsConfig.school_id == school_id,
                ControllerEarningsConfig.is_active.is_(True),
            )
            .values(is_active=False)
        )

        now = datetime.now(timezone.utc)
        config = ControllerEarningsConfig(
            main_base_rate=Decimal(str(data.main_base_rate)),
            referral_base_rate=Decimal(str(data.referral_base_rate)),
            leave_penalty_multiplier=Decimal(str(data.leave_penalty_multiplier)),
            leave_threshold=data.leave_threshold,
            unpaid_penalty_multiplier=Decimal(str(data.unpaid_penalty_multiplier)),
            referral_bonus_multiplier=Decimal(str(data.referral_bonus_multiplier)),
            target_earnings=Decimal(str(data.target_earnings)),
            effective_from=data.effective_from or now,
            is_active=True,
            school_id=school_id,
            admin_id=admin_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(config)
        await self.db.commit()
        await self.db.refresh(config)

        if not await self._audit(school_id, admin_id, data):
            await self.db.refresh(config)

        logger.info(f"Created earnings config {config.id} for school {school_id}")
        return config

    async def update_config(
        self,
        school_id: str,
        config_id: int,
        data: EarningsConfigInput,
        admin_id: Optional[str] = None,
    ) -> ControllerEarningsConfig:
        """Overwrite the rates of an existing version of the school."""
        result = await self.db.execute(
            select(ControllerEarningsConfig).where(
                ControllerEarningsConfig.id == config_id,
                ControllerEarningsConfig.school_id == school_id,
            )
        )
        config = result.scalar_one_or_none()
        if config is None:
            raise EarningsConfigNotFoundError(
                f"Earnings config {config_id} not found for school {school_id}"
            )

        config.main_base_rate = Decimal(str(data.main_base_rate))
        config.referral_base_rate = Decimal(str(data.referral_base_rate))
        config.leave_penalty_multiplier = Decimal(str(data.leave_penalty_multiplier))
        config.leave_threshold = data.leave_threshold
        config.unpaid_penalty_multiplier = Decimal(str(data.unpaid_penalty_multiplier))
        config.referral_bonus_multiplier = Decimal(str(data.referral_bonus_multiplier))
        config.target_earnings = Decimal(str(data.target_earnings))
        if data.effective_from is not None:
            config.effective_from = data.effective_from
        config.admin_id = admin_id
        config.updated_at = datetime.now(timezone.utc)

        await self.db.commit()
        await self.db.refresh(config)

        logger.info(f"Updated earnings config {config.id} for school {school_id}")
        return config

    async def _audit(
        self,
        school_id: str,
        admin_id: Optional[str],
        data: EarningsConfigInput,
    ) -> bool:
        try:
            self.db.add(AuditLog(
                action_type=AUDIT_ACTION_CONFIG_UPDATED,
                admin_id=admin_id,
                school_id=school_id,
                details=data.model_dump(mode="json", by_alias=True, exclude={"effective_from"}),
            ))
            await self.db.commit()
            return True
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Failed to create audit log for school {school_id}: {e}")
            return False
