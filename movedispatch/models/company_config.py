from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class CompanyConfig(Base):
    __tablename__ = "company_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bucket_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    total_trucks: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    max_trucks_per_booking: Mapped[int | None] = mapped_column(Integer)
    hold_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=15)
    customer_deposit_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=10000
    )
    customer_reschedule_fee_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=5000
    )
    sales_deposit_min_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=5000
    )
    sales_deposit_max_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=50000
    )
    sales_reschedule_fee_min_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    sales_reschedule_fee_max_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=10000
    )
    sales_trip_fee_min_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    sales_trip_fee_max_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=20000
    )
    sales_commission_rate_bps: Mapped[int] = mapped_column(
        Integer, nullable=False, default=500
    )
    commission_cap_cents: Mapped[int | None] = mapped_column(Integer)
    pay_period_days: Mapped[int] = mapped_column(Integer, nullable=False, default=14)
    notifications_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    default_hourly_rate_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=10000
    )
    minimum_billed_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=60
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )
