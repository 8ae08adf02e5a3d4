from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow


class BookingStatusEnum(str, Enum):
    PENDING_PAYMENT = "pendingPayment"
    CONFIRMED = "confirmed"
    RESCHEDULE_PENDING_PAYMENT = "reschedulePendingPayment"
    RESCHEDULED = "rescheduled"
    CANCELED = "canceled"
    EXPIRED = "expired"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_status", "status"),
        Index("ix_bookings_start_utc", "start_utc"),
        Index("ix_bookings_hold_expires_at_utc", "hold_expires_at_utc"),
        Index("ix_bookings_sales_user_id", "sales_user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_user_id: Mapped[int | None] = mapped_column(Integer)
    sales_user_id: Mapped[int | None] = mapped_column(Integer)
    linked_to_booking_id: Mapped[int | None] = mapped_column(
        ForeignKey("bookings.id")
    )
    reservation_id: Mapped[int | None] = mapped_column(ForeignKey("reservations.id"))
    status: Mapped[BookingStatusEnum] = mapped_column(
        SAEnum(
            BookingStatusEnum,
            native_enum=False,
            create_constraint=False,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
    )
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    move_from_address: Mapped[str] = mapped_column(String(500), nullable=False)
    move_to_address: Mapped[str] = mapped_column(String(500), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    start_utc: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_utc: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    requested_trucks: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    deposit_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    reschedule_fee_amount_cents: Mapped[int | None] = mapped_column(Integer)
    trip_fee_cents: Mapped[int | None] = mapped_column(Integer)
    special_items: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    hold_expires_at_utc: Mapped[datetime | None] = mapped_column(DateTime)
    created_at_utc: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at_utc: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    reservation: Mapped["Reservation | None"] = relationship("Reservation")
    linked_to: Mapped["Booking | None"] = relationship(
        "Booking", remote_side=[id]
    )
