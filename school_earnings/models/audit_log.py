from datetime import datetime, timezone
from typing import Optional, Any

from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from school_earnings.database import Base
from school_earnings.db_types import JSONType


class AuditLog(Base):
    """
    Audit trail of admin actions.
    Action types used here: earnings_config_updated.
    """
    __tablename__ = "auditlog"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    action_type: Mapped[str] = mapped_column("actionType", String(100), nullable=False, index=True)
    admin_id: Mapped[Optional[str]] = mapped_column("adminId", String(64), nullable=True)
    school_id: Mapped[Optional[str]] = mapped_column("schoolId", String(64), nullable=True, index=True)

    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
