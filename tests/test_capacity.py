from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from movedispatch.errors import CapacityError, CapacityErrorKind
from movedispatch.models import Reservation
from movedispatch.services import bookings as bookings_service
from movedispatch.services.capacity import (
    CapacityScheduler,
    bucket_ceil,
    bucket_floor,
    iter_buckets,
)
from movedispatch.services.config_store import get_config_snapshot

from .factories import CUSTOMER, NOW, at, booking_payload


def _scheduler(db_session, now=NOW):
    return CapacityScheduler(db_session, get_config_snapshot(db_session), now)


def test_bucket_grid_is_anchored_at_epoch():
    value = datetime(2030, 3, 10, 10, 20)
    assert bucket_floor(value, 30) == datetime(2030, 3, 10, 10, 0)
    assert bucket_ceil(value, 30) == datetime(2030, 3, 10, 10, 30)
    assert bucket_ceil(datetime(2030, 3, 10, 10, 30), 30) == datetime(2030, 3, 10, 10, 30)
    assert list(iter_buckets(at(10, 15), at(11), 60)) == [at(10)]


def test_overlapping_booking_exhausts_shared_bucket(db_session):
    scheduler = _scheduler(db_session)
    scheduler.reserve(at(10), at(12), 2)
    db_session.commit()

    with pytest.raises(CapacityError) as exc_info:
        scheduler.reserve(at(11), at(13), 2)
    assert exc_info.value.kind == CapacityErrorKind.EXHAUSTED
    db_session.rollback()

    usage = scheduler.usage_by_bucket(at(10), at(13))
    assert usage == {at(10): 2, at(11): 2, at(12): 0}


def test_abutting_windows_do_not_share_boundary_bucket(db_session):
    scheduler = _scheduler(db_session)
    scheduler.reserve(at(10), at(12), 3)
    reservation = scheduler.reserve(at(12), at(14), 3)
    db_session.commit()

    assert reservation.id is not None
    assert scheduler.check_availability(at(11, 30), at(12, 30), 1) is False


def test_reserve_then_release_restores_usage(db_session):
    scheduler = _scheduler(db_session)
    before = scheduler.usage_by_bucket(at(8), at(18))

    reservation = scheduler.reserve(at(9), at(15), 2)
    assert scheduler.usage_by_bucket(at(8), at(18)) != before
    assert scheduler.release(reservation.id) is True
    assert scheduler.release(reservation.id) is False
    db_session.commit()

    assert scheduler.usage_by_bucket(at(8), at(18)) == before


def test_invalid_window_is_rejected(db_session):
    scheduler = _scheduler(db_session)
    with pytest.raises(CapacityError) as exc_info:
        scheduler.reserve(at(12), at(12), 1)
    assert exc_info.value.kind == CapacityErrorKind.INVALID_WINDOW
    assert exc_info.value.status_code == 422


def test_lapsed_hold_stops_counting(db_session):
    scheduler = _scheduler(db_session)
    scheduler.reserve(at(10), at(11), 3, hold_until=NOW + timedelta(minutes=15))
    db_session.commit()

    hold = db_session.execute(select(Reservation)).scalar_one()
    assert hold.holds_capacity(NOW) is True
    assert hold.holds_capacity(NOW + timedelta(minutes=16)) is False
    assert scheduler.check_availability(at(10), at(11), 1) is False
    later = _scheduler(db_session, now=NOW + timedelta(minutes=16))
    assert later.check_availability(at(10), at(11), 1) is True


def test_remaining_by_bucket_never_negative(db_session, configure):
    scheduler = _scheduler(db_session)
    scheduler.reserve(at(10), at(11), 3)
    db_session.commit()
    configure(total_trucks=1)

    remaining = _scheduler(db_session).remaining_by_bucket(at(10), at(12))
    assert [(row.bucket_start, row.remaining_capacity) for row in remaining] == [
        (at(10), 0),
        (at(11), 1),
    ]


def test_concurrent_bookings_never_oversell(SessionLocal, db_session):
    get_config_snapshot(db_session)
    db_session.commit()

    def attempt(_):
        with SessionLocal() as session:
            try:
                booking = bookings_service.create_booking(
                    session,
                    booking_payload(at(10), at(12), 2),
                    CUSTOMER,
                    now=NOW,
                )
            except CapacityError as exc:
                return exc.kind
            return booking.id

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(attempt, range(4)))

    successes = [result for result in results if isinstance(result, int)]
    failures = [result for result in results if result == CapacityErrorKind.EXHAUSTED]
    assert len(successes) == 1
    assert len(failures) == 3

    reserved = db_session.execute(
        select(func.coalesce(func.sum(Reservation.trucks), 0)).where(
            Reservation.released_at_utc.is_(None)
        )
    ).scalar_one()
    assert reserved == 2
