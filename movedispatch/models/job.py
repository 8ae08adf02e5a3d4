from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow


class JobStatusEnum(str, Enum):
    SCHEDULED = "scheduled"
    EN_ROUTE = "enRoute"
    STARTED = "started"
    FINISHED_LOADING = "finishedLoading"
    START_UNLOADING = "startUnloading"
    COMPLETED = "completed"
    ISSUE_REPORTED = "issueReported"
    PAYMENT_PENDING = "paymentPending"


def _job_status_type() -> SAEnum:
    return SAEnum(
        JobStatusEnum,
        native_enum=False,
        create_constraint=False,
        values_callable=lambda enum: [member.value for member in enum],
    )


job_crew = Table(
    "job_crew",
    Base.metadata,
    Column(
        "job_id", ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True
    ),
    Column("employee_id", ForeignKey("employees.id"), primary_key=True),
)


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_status", "status"),
        Index("ix_jobs_scheduled_start_utc", "scheduled_start_utc"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    booking_id: Mapped[int] = mapped_column(
        ForeignKey("bookings.id"), unique=True, nullable=False
    )
    truck_id: Mapped[int | None] = mapped_column(ForeignKey("trucks.id"))
    status: Mapped[JobStatusEnum] = mapped_column(_job_status_type(), nullable=False)
    status_before_issue: Mapped[JobStatusEnum | None] = mapped_column(
        _job_status_type()
    )
    scheduled_start_utc: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    actual_start_utc: Mapped[datetime | None] = mapped_column(DateTime)
    actual_end_utc: Mapped[datetime | None] = mapped_column(DateTime)
    notes: Mapped[str | None] = mapped_column(Text)
    issue_description: Mapped[str | None] = mapped_column(Text)
    tip_amount_cents: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    booking: Mapped["Booking"] = relationship("Booking")
    truck: Mapped["Truck | None"] = relationship("Truck")
    crew: Mapped[list["Employee"]] = relationship(
        "Employee", secondary=job_crew, order_by="Employee.id"
    )
    materials: Mapped[list["JobMaterial"]] = relationship(
        "JobMaterial",
        cascade="all, delete-orphan",
        order_by="JobMaterial.material_code",
    )


class JobMaterial(Base):
    __tablename__ = "job_materials"

    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True
    )
    material_code: Mapped[str] = mapped_column(String(50), primary_key=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)


class JobStatusOverride(Base):
    __tablename__ = "job_status_overrides"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    from_status: Mapped[str] = mapped_column(String(50), nullable=False)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    note: Mapped[str | None] = mapped_column(String(255))
    overridden_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    overridden_by: Mapped[str] = mapped_column(String(150), nullable=False)
