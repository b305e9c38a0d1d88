"""Student roster and controller directory models.

Both tables are owned by the school-management application; this service
only reads them. Legacy column names are kept as-is and mapped onto
snake_case attributes.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from school_earnings.database import Base


class Student(Base):
    """
    Student roster row.

    Status vocabulary: Active, Not Yet, Leave, Ramadan Leave (plus others
    that the earnings rules ignore).
    """
    __tablename__ = "wpos_wpdatatable_23"

    id: Mapped[int] = mapped_column("wdt_ID", Integer, primary_key=True, autoincrement=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    package: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Fee package, e.g. '0 Fee', '0 Fee 3 days', '3 days'"
    )

    registration_date: Mapped[Optional[datetime]] = mapped_column(
        "registrationdate", DateTime, nullable=True
    )
    exit_date: Mapped[Optional[datetime]] = mapped_column("exitdate", DateTime, nullable=True)

    # Controller-of-record and referral linkage (controller codes)
    controller_code: Mapped[Optional[str]] = mapped_column(
        "u_control", String(100), nullable=True, index=True
    )
    refer: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    # Telegram chat linkage
    chat_id: Mapped[Optional[str]] = mapped_column("chatId", String(100), nullable=True)

    school_id: Mapped[Optional[str]] = mapped_column("schoolId", String(64), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Student {self.id} {self.status!r} controller={self.controller_code!r}>"


class Controller(Base):
    """Controller directory: maps a controller code to a display name."""
    __tablename__ = "wpos_wpdatatable_28"

    id: Mapped[int] = mapped_column("wdt_ID", Integer, primary_key=True, autoincrement=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    code: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    school_id: Mapped[Optional[str]] = mapped_column("schoolId", String(64), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Controller {self.code} {self.name!r}>"
