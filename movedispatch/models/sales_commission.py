from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class SalesCommission(Base):
    __tablename__ = "sales_commissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    booking_id: Mapped[int] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    sales_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    deposit_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    is_final: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    finalized_at_utc: Mapped[datetime | None] = mapped_column(DateTime)
    created_at_utc: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at_utc: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )
