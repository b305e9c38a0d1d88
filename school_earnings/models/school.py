from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from school_earnings.database import Base


class School(Base):
    """Tenant school. Every roster, ledger and config row carries its id."""
    __tablename__ = "school"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<School {self.slug}>"
