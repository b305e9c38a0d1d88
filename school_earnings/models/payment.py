"""Monthly payment ledger: one row per student per calendar month."""
from typing import Optional

from sqlalchemy import String, Boolean, Integer
from sqlalchemy.orm import Mapped, mapped_column

from school_earnings.database import Base


class MonthPayment(Base):
    """Payment state of one student for one `YYYY-MM` month."""
    __tablename__ = "months_table"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column("studentid", Integer, nullable=False, index=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False, comment="YYYY-MM")

    # Free-form status written by several payment flows (Paid, paid, SUCCESS, pending...)
    payment_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_free_month: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    school_id: Mapped[Optional[str]] = mapped_column("schoolId", String(64), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<MonthPayment student={self.student_id} {self.month} {self.payment_status!r}>"
