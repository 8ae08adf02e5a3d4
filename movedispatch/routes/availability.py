from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..errors import CapacityError, CapacityErrorKind
from ..schemas import AvailabilityDayRead, BucketRead
from ..services.capacity import BucketCapacity, CapacityScheduler, normalize_window
from ..services.config_store import get_config_snapshot

router = APIRouter(prefix="/availability")


def _remaining(db: Session, from_utc: datetime, to_utc: datetime) -> list[BucketCapacity]:
    from_utc, to_utc = normalize_window(from_utc, to_utc)
    if to_utc - from_utc > timedelta(days=settings.availability_max_days):
        raise CapacityError(
            CapacityErrorKind.INVALID_WINDOW,
            f"Availability can be queried for at most {settings.availability_max_days} days.",
        )
    scheduler = CapacityScheduler(db, get_config_snapshot(db))
    return scheduler.remaining_by_bucket(from_utc, to_utc)


@router.get("", response_model=list[BucketRead])
def availability(
    from_utc: datetime = Query(..., alias="fromUtc"),
    to_utc: datetime = Query(..., alias="toUtc"),
    db: Session = Depends(get_db),
) -> list[BucketRead]:
    return [
        BucketRead(
            bucket_start=bucket.bucket_start,
            remaining_capacity=bucket.remaining_capacity,
        )
        for bucket in _remaining(db, from_utc, to_utc)
    ]


@router.get("/by-day", response_model=list[AvailabilityDayRead])
def availability_by_day(
    from_utc: datetime = Query(..., alias="fromUtc"),
    to_utc: datetime = Query(..., alias="toUtc"),
    db: Session = Depends(get_db),
) -> list[AvailabilityDayRead]:
    days: dict[str, list[BucketRead]] = {}
    for bucket in _remaining(db, from_utc, to_utc):
        days.setdefault(bucket.bucket_start.date().isoformat(), []).append(
            BucketRead(
                bucket_start=bucket.bucket_start,
                remaining_capacity=bucket.remaining_capacity,
            )
        )
    return [AvailabilityDayRead(date=day, buckets=rows) for day, rows in days.items()]
