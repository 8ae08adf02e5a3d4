from datetime import datetime

from sqlalchemy import DateTime, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_window", "start_utc", "end_utc"),
        Index("ix_reservations_released_at_utc", "released_at_utc"),
        Index("ix_reservations_lineage_id", "lineage_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    start_utc: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_utc: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    trucks: Mapped[int] = mapped_column(Integer, nullable=False)
    # Shared by a booking's reservation and those of its reschedules. Only
    # one of them is ever kept, so a lineage counts once per bucket.
    lineage_id: Mapped[int | None] = mapped_column(Integer)
    # Set while the reservation is an unpaid hold.
    expires_at_utc: Mapped[datetime | None] = mapped_column(DateTime)
    released_at_utc: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def holds_capacity(self, now: datetime) -> bool:
        if self.released_at_utc is not None:
            return False
        return self.expires_at_utc is None or self.expires_at_utc > now

    @property
    def lineage_key(self) -> int:
        return self.lineage_id if self.lineage_id is not None else self.id
