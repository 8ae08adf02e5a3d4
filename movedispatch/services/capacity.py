"""Truck capacity per time bucket.

Time is cut into ``bucket_minutes`` wide buckets on a grid anchored at the
Unix epoch. A reservation for ``[start, end)`` consumes every bucket it
overlaps; ``end`` is exclusive, so a window ending exactly on a boundary
leaves the following bucket untouched.

Scheduler methods never commit. The caller owns the transaction, and
``reserve``/``release``/``make_permanent`` take the fleet lock first so the
availability check and the write it guards cannot interleave with another
caller's.
"""
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..db import acquire_fleet_lock
from ..errors import CapacityError, CapacityErrorKind, InvalidRequestError, NotFoundError
from ..models import Reservation
from ..models.base import as_utc_naive, utcnow
from .config_store import ConfigSnapshot

logger = logging.getLogger(__name__)

GRID_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class BucketCapacity:
    bucket_start: datetime
    remaining_capacity: int


def bucket_floor(value: datetime, bucket_minutes: int) -> datetime:
    step = timedelta(minutes=bucket_minutes)
    return GRID_EPOCH + ((value - GRID_EPOCH) // step) * step


def bucket_ceil(value: datetime, bucket_minutes: int) -> datetime:
    floor = bucket_floor(value, bucket_minutes)
    if floor == value:
        return floor
    return floor + timedelta(minutes=bucket_minutes)


def iter_buckets(
    start: datetime, end: datetime, bucket_minutes: int
) -> Iterator[datetime]:
    step = timedelta(minutes=bucket_minutes)
    current = bucket_floor(start, bucket_minutes)
    stop = bucket_ceil(end, bucket_minutes)
    while current < stop:
        yield current
        current += step


def normalize_window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start = as_utc_naive(start)
    end = as_utc_naive(end)
    if end <= start:
        raise CapacityError(
            CapacityErrorKind.INVALID_WINDOW, "Window end must be after its start."
        )
    return start, end


class CapacityScheduler:
    def __init__(
        self, db: Session, config: ConfigSnapshot, now: datetime | None = None
    ) -> None:
        self.db = db
        self.config = config
        self.now = now or utcnow()

    def _active_reservations(
        self,
        range_start: datetime,
        range_end: datetime,
        exclude_ids: Iterable[int] = (),
    ) -> list[Reservation]:
        query = select(Reservation).where(
            Reservation.released_at_utc.is_(None),
            Reservation.start_utc < range_end,
            Reservation.end_utc > range_start,
            or_(
                Reservation.expires_at_utc.is_(None),
                Reservation.expires_at_utc > self.now,
            ),
        )
        excluded = list(exclude_ids)
        if excluded:
            query = query.where(Reservation.id.not_in(excluded))
        return list(self.db.execute(query).scalars().all())

    def usage_by_bucket(
        self,
        start: datetime,
        end: datetime,
        exclude_ids: Iterable[int] = (),
        candidate: tuple[int | None, int] | None = None,
    ) -> dict[datetime, int]:
        """Trucks in use per bucket.

        Reservations of one lineage are counted once per bucket, at their
        largest truck count. ``candidate`` is a ``(lineage_id, trucks)`` pair
        for a reservation about to be made and is folded in the same way.
        """
        bucket_minutes = self.config.bucket_minutes
        step = timedelta(minutes=bucket_minutes)
        buckets = list(iter_buckets(start, end, bucket_minutes))
        if not buckets:
            return {}
        reservations = self._active_reservations(
            buckets[0], buckets[-1] + step, exclude_ids
        )
        usage: dict[datetime, int] = {}
        for bucket_start in buckets:
            bucket_end = bucket_start + step
            peaks: dict[int | str, int] = {}
            for reservation in reservations:
                if (
                    reservation.start_utc < bucket_end
                    and reservation.end_utc > bucket_start
                ):
                    key = reservation.lineage_key
                    peaks[key] = max(peaks.get(key, 0), reservation.trucks)
            if candidate is not None:
                lineage_id, trucks = candidate
                key = lineage_id if lineage_id is not None else "candidate"
                peaks[key] = max(peaks.get(key, 0), trucks)
            usage[bucket_start] = sum(peaks.values())
        return usage

    def check_availability(
        self,
        start: datetime,
        end: datetime,
        trucks: int,
        exclude_ids: Iterable[int] = (),
        lineage_id: int | None = None,
    ) -> bool:
        start, end = normalize_window(start, end)
        if trucks < 1:
            raise InvalidRequestError("At least one truck must be requested.")
        usage = self.usage_by_bucket(
            start, end, exclude_ids, candidate=(lineage_id, trucks)
        )
        total = self.config.total_trucks
        return all(used <= total for used in usage.values())

    def reserve(
        self,
        start: datetime,
        end: datetime,
        trucks: int,
        hold_until: datetime | None = None,
        lineage_id: int | None = None,
    ) -> Reservation:
        start, end = normalize_window(start, end)
        acquire_fleet_lock(self.db)
        if not self.check_availability(start, end, trucks, lineage_id=lineage_id):
            logger.info(
                "Capacity exhausted for %s trucks in %s - %s", trucks, start, end
            )
            raise CapacityError(
                CapacityErrorKind.EXHAUSTED,
                "Not enough trucks are available for the requested window.",
            )
        reservation = Reservation(
            start_utc=start,
            end_utc=end,
            trucks=trucks,
            lineage_id=lineage_id,
            expires_at_utc=hold_until,
        )
        self.db.add(reservation)
        self.db.flush()
        logger.info(
            "Reserved %s trucks for %s - %s (reservation %s)",
            trucks,
            start,
            end,
            reservation.id,
        )
        return reservation

    def release(self, reservation_id: int) -> bool:
        """Release a reservation. Returns False if it was already released."""
        acquire_fleet_lock(self.db)
        reservation = self.db.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found.")
        if reservation.released_at_utc is not None:
            return False
        reservation.released_at_utc = self.now
        self.db.flush()
        logger.info("Released reservation %s", reservation_id)
        return True

    def make_permanent(self, reservation_id: int) -> Reservation:
        """Turn a payment hold into a permanent reservation.

        A hold that already lapsed is re-validated against current usage;
        if its window has been taken meanwhile the hold is released and
        CapacityError(Exhausted) is raised.
        """
        acquire_fleet_lock(self.db)
        reservation = self.db.get(Reservation, reservation_id)
        if reservation is None or reservation.released_at_utc is not None:
            raise NotFoundError(f"Reservation {reservation_id} is not active.")
        if reservation.expires_at_utc is None:
            return reservation
        if reservation.expires_at_utc <= self.now and not self.check_availability(
            reservation.start_utc,
            reservation.end_utc,
            reservation.trucks,
            exclude_ids=[reservation.id],
            lineage_id=reservation.lineage_id,
        ):
            raise CapacityError(
                CapacityErrorKind.EXHAUSTED,
                "The payment hold lapsed and its window is no longer available.",
            )
        reservation.expires_at_utc = None
        self.db.flush()
        return reservation

    def remaining_by_bucket(
        self, from_utc: datetime, to_utc: datetime
    ) -> list[BucketCapacity]:
        from_utc, to_utc = normalize_window(from_utc, to_utc)
        usage = self.usage_by_bucket(from_utc, to_utc)
        total = self.config.total_trucks
        return [
            BucketCapacity(bucket_start=bucket, remaining_capacity=max(total - used, 0))
            for bucket, used in usage.items()
        ]
