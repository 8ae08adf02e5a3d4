from datetime import date, datetime, time
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow


class DayOffStatusEnum(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class EmployeeSchedule(Base):
    __tablename__ = "employee_schedules"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "day_of_week", name="uq_employee_schedules_employee_day"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    # 0 is Monday, as in date.weekday().
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    start_time: Mapped[time | None] = mapped_column(Time)
    end_time: Mapped[time | None] = mapped_column(Time)


class DayOffRequest(Base):
    __tablename__ = "day_off_requests"
    __table_args__ = (
        sa.Index("ix_day_off_requests_employee_date", "employee_id", "date_utc"),
        sa.Index("ix_day_off_requests_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    date_utc: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500))
    status: Mapped[DayOffStatusEnum] = mapped_column(
        SAEnum(
            DayOffStatusEnum,
            native_enum=False,
            create_constraint=False,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=DayOffStatusEnum.PENDING,
    )
    reviewed_by_user_id: Mapped[int | None] = mapped_column(Integer)
    reviewed_at_utc: Mapped[datetime | None] = mapped_column(DateTime)
    review_notes: Mapped[str | None] = mapped_column(String(500))
    created_at_utc: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at_utc: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    employee: Mapped["Employee"] = relationship("Employee")
