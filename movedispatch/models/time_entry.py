from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TimeEntry(Base):
    __tablename__ = "time_entries"
    __table_args__ = (
        Index("ix_time_entries_job_employee", "job_id", "employee_id"),
        Index("ix_time_entries_check_in_utc", "check_in_utc"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    check_in_utc: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    check_out_utc: Mapped[datetime | None] = mapped_column(DateTime)
