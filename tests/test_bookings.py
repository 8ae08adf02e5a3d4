from datetime import timedelta

import pytest
from sqlalchemy import select

from movedispatch.actors import Actor, ActorRole
from movedispatch.errors import (
    CapacityError,
    CapacityErrorKind,
    InvalidRequestError,
    PermissionDeniedError,
    StateError,
)
from movedispatch.models import (
    Booking,
    BookingStatusEnum,
    Job,
    JobStatusEnum,
    JobStatusOverride,
    Reservation,
    SalesCommission,
)
from movedispatch.schemas import BookingReschedule, JobCreate
from movedispatch.services import bookings as bookings_service
from movedispatch.services import jobs as jobs_service
from movedispatch.services.capacity import CapacityScheduler
from movedispatch.services.config_store import get_config_snapshot

from .factories import ADMIN, CUSTOMER, NOW, SALES, at, booking_payload


def _active_reservations(db_session):
    scheduler = CapacityScheduler(db_session, get_config_snapshot(db_session), NOW)
    return scheduler._active_reservations(at(0), at(48))


def test_create_booking_holds_capacity(db_session):
    booking = bookings_service.create_booking(
        db_session, booking_payload(at(10), at(12), 2), CUSTOMER, now=NOW
    )

    assert booking.status == BookingStatusEnum.PENDING_PAYMENT
    assert booking.hold_expires_at_utc == NOW + timedelta(minutes=15)
    assert booking.customer_user_id == CUSTOMER.user_id
    assert booking.deposit_amount_cents == 10000
    reservation = db_session.get(Reservation, booking.reservation_id)
    assert reservation.expires_at_utc == booking.hold_expires_at_utc


def test_second_overlapping_booking_is_rejected_without_rows(db_session):
    bookings_service.create_booking(
        db_session, booking_payload(at(10), at(12), 2), CUSTOMER, now=NOW
    )
    with pytest.raises(CapacityError) as exc_info:
        bookings_service.create_booking(
            db_session, booking_payload(at(11), at(13), 2), CUSTOMER, now=NOW
        )

    assert exc_info.value.kind == CapacityErrorKind.EXHAUSTED
    assert len(db_session.execute(select(Booking)).scalars().all()) == 1


def test_requested_trucks_over_cap(db_session, configure):
    configure(max_trucks_per_booking=1)
    with pytest.raises(CapacityError) as exc_info:
        bookings_service.create_booking(
            db_session, booking_payload(at(10), at(12), 2), CUSTOMER, now=NOW
        )
    assert exc_info.value.kind == CapacityErrorKind.OVER_CAP


def test_window_in_the_past_is_invalid(db_session):
    with pytest.raises(CapacityError) as exc_info:
        bookings_service.create_booking(
            db_session,
            booking_payload(NOW - timedelta(hours=2), NOW - timedelta(hours=1)),
            CUSTOMER,
            now=NOW,
        )
    assert exc_info.value.kind == CapacityErrorKind.INVALID_WINDOW


def test_sales_deposit_must_fall_in_range(db_session):
    with pytest.raises(InvalidRequestError):
        bookings_service.create_booking(
            db_session,
            booking_payload(at(10), at(12), deposit_amount_cents=1000),
            SALES,
            now=NOW,
        )

    booking = bookings_service.create_booking(
        db_session,
        booking_payload(at(10), at(12), deposit_amount_cents=20000),
        SALES,
        now=NOW,
    )
    assert booking.deposit_amount_cents == 20000
    assert booking.sales_user_id == SALES.user_id


def test_customer_cannot_set_deposit(db_session):
    with pytest.raises(PermissionDeniedError):
        bookings_service.create_booking(
            db_session,
            booking_payload(at(10), at(12), deposit_amount_cents=20000),
            CUSTOMER,
            now=NOW,
        )


def test_confirm_payment_is_idempotent(db_session):
    booking = bookings_service.create_booking(
        db_session, booking_payload(at(10), at(12)), CUSTOMER, now=NOW
    )
    first = bookings_service.confirm_payment(db_session, booking.id, now=NOW)
    second = bookings_service.confirm_payment(db_session, booking.id, now=NOW)

    assert first.status == second.status == BookingStatusEnum.CONFIRMED
    assert first.hold_expires_at_utc is None
    reservation = db_session.get(Reservation, booking.reservation_id)
    assert reservation.expires_at_utc is None
    assert reservation.released_at_utc is None


def test_terminal_bookings_reject_further_transitions(db_session):
    booking = bookings_service.create_booking(
        db_session, booking_payload(at(10), at(12)), CUSTOMER, now=NOW
    )
    bookings_service.cancel_booking(db_session, booking.id, CUSTOMER, now=NOW)

    with pytest.raises(StateError):
        bookings_service.confirm_payment(db_session, booking.id, now=NOW)
    with pytest.raises(StateError):
        bookings_service.reschedule_booking(
            db_session,
            booking.id,
            BookingReschedule(new_start_utc=at(14), new_end_utc=at(16)),
            CUSTOMER,
            now=NOW,
        )
    assert _active_reservations(db_session) == []


def test_payment_failure_releases_hold(db_session):
    booking = bookings_service.create_booking(
        db_session, booking_payload(at(10), at(12), 3), CUSTOMER, now=NOW
    )
    failed = bookings_service.fail_payment(db_session, booking.id, now=NOW)

    assert failed.status == BookingStatusEnum.CANCELED
    assert _active_reservations(db_session) == []
    # A repeated failure webhook is a no-op.
    assert bookings_service.fail_payment(db_session, booking.id, now=NOW).status == (
        BookingStatusEnum.CANCELED
    )


def test_late_payment_confirms_when_window_still_free(db_session):
    booking = bookings_service.create_booking(
        db_session, booking_payload(at(10), at(12)), CUSTOMER, now=NOW
    )
    late = NOW + timedelta(minutes=20)

    confirmed = bookings_service.confirm_payment(db_session, booking.id, now=late)
    assert confirmed.status == BookingStatusEnum.CONFIRMED


def test_late_payment_expires_when_window_was_taken(db_session):
    booking = bookings_service.create_booking(
        db_session, booking_payload(at(10), at(12), 3), CUSTOMER, now=NOW
    )
    late = NOW + timedelta(minutes=20)
    bookings_service.create_booking(
        db_session, booking_payload(at(10), at(12), 1), CUSTOMER, now=late
    )

    with pytest.raises(CapacityError) as exc_info:
        bookings_service.confirm_payment(db_session, booking.id, now=late)
    assert exc_info.value.kind == CapacityErrorKind.EXHAUSTED
    db_session.expire_all()
    assert db_session.get(Booking, booking.id).status == BookingStatusEnum.EXPIRED


def test_reschedule_success_swaps_reservations(db_session, confirmed_booking):
    original = confirmed_booking(at(10), at(12), 2, actor=SALES, deposit_amount_cents=20000)
    job = jobs_service.materialize_job(
        db_session, JobCreate(booking_id=original.id), SALES, now=NOW
    )

    replacement = bookings_service.reschedule_booking(
        db_session,
        original.id,
        BookingReschedule(new_start_utc=at(14), new_end_utc=at(16), new_requested_trucks=2),
        SALES,
        now=NOW,
    )
    db_session.refresh(original)
    assert original.status == BookingStatusEnum.RESCHEDULE_PENDING_PAYMENT
    assert replacement.linked_to_booking_id == original.id
    assert replacement.reschedule_fee_amount_cents == 5000

    bookings_service.confirm_payment(db_session, replacement.id, now=NOW)
    db_session.expire_all()

    assert db_session.get(Booking, original.id).status == BookingStatusEnum.RESCHEDULED
    assert db_session.get(Booking, replacement.id).status == BookingStatusEnum.CONFIRMED
    moved = db_session.get(Job, job.id)
    assert moved.booking_id == replacement.id
    assert moved.scheduled_start_utc == at(14)
    active = _active_reservations(db_session)
    assert [reservation.id for reservation in active] == [replacement.reservation_id]
    commission = db_session.execute(select(SalesCommission)).scalar_one()
    assert commission.booking_id == replacement.id


def test_reschedule_into_full_window_changes_nothing(db_session, confirmed_booking):
    original = confirmed_booking(at(10), at(12), 1)
    confirmed_booking(at(14), at(16), 3)

    with pytest.raises(CapacityError):
        bookings_service.reschedule_booking(
            db_session,
            original.id,
            BookingReschedule(new_start_utc=at(15), new_end_utc=at(17)),
            CUSTOMER,
            now=NOW,
        )
    db_session.expire_all()
    assert db_session.get(Booking, original.id).status == BookingStatusEnum.CONFIRMED
    assert len(db_session.execute(select(Booking)).scalars().all()) == 2


def test_failed_reschedule_payment_reverts_original(db_session, confirmed_booking):
    original = confirmed_booking(at(10), at(12), 1)
    replacement = bookings_service.reschedule_booking(
        db_session,
        original.id,
        BookingReschedule(new_start_utc=at(14), new_end_utc=at(16)),
        CUSTOMER,
        now=NOW,
    )

    bookings_service.fail_payment(db_session, replacement.id, now=NOW)
    db_session.expire_all()

    assert db_session.get(Booking, original.id).status == BookingStatusEnum.CONFIRMED
    active = _active_reservations(db_session)
    assert [reservation.id for reservation in active] == [original.reservation_id]


def test_customer_cannot_cancel_someone_elses_booking(db_session, confirmed_booking):
    booking = confirmed_booking(at(10), at(12))
    stranger = Actor(role=ActorRole.CUSTOMER, user_id=999)
    with pytest.raises(PermissionDeniedError):
        bookings_service.cancel_booking(db_session, booking.id, stranger, now=NOW)


def test_cancel_removes_scheduled_job_and_provisional_commission(
    db_session, confirmed_booking
):
    booking = confirmed_booking(at(10), at(12), actor=SALES, deposit_amount_cents=20000)
    jobs_service.materialize_job(db_session, JobCreate(booking_id=booking.id), SALES, now=NOW)

    canceled = bookings_service.cancel_booking(db_session, booking.id, SALES, now=NOW)

    assert canceled.status == BookingStatusEnum.CANCELED
    assert db_session.execute(select(Job)).scalars().all() == []
    assert db_session.execute(select(SalesCommission)).scalars().all() == []
    assert _active_reservations(db_session) == []


def test_admin_delete_releases_capacity(db_session, confirmed_booking):
    booking = confirmed_booking(at(10), at(12), 3)

    bookings_service.admin_delete_booking(db_session, booking.id, now=NOW)

    assert db_session.get(Booking, booking.id) is None
    assert _active_reservations(db_session) == []
    assert bookings_service.create_booking(
        db_session, booking_payload(at(10), at(12), 3), ADMIN, now=NOW
    ).id


def test_transition_table_terminal_states():
    assert bookings_service.TERMINAL_STATUSES == {
        BookingStatusEnum.RESCHEDULED,
        BookingStatusEnum.CANCELED,
        BookingStatusEnum.EXPIRED,
    }
    assert bookings_service.can_transition(
        BookingStatusEnum.RESCHEDULE_PENDING_PAYMENT, BookingStatusEnum.CONFIRMED
    )
    assert not bookings_service.can_transition(
        BookingStatusEnum.CONFIRMED, BookingStatusEnum.PENDING_PAYMENT
    )


def test_reschedule_overlapping_its_own_window_counts_once(db_session, confirmed_booking):
    original = confirmed_booking(at(10), at(12), 2)

    replacement = bookings_service.reschedule_booking(
        db_session,
        original.id,
        BookingReschedule(new_start_utc=at(11), new_end_utc=at(13), new_requested_trucks=2),
        CUSTOMER,
        now=NOW,
    )

    assert replacement.status == BookingStatusEnum.PENDING_PAYMENT
    scheduler = CapacityScheduler(db_session, get_config_snapshot(db_session), NOW)
    assert scheduler.usage_by_bucket(at(10), at(13)) == {at(10): 2, at(11): 2, at(12): 2}
    bookings_service.create_booking(
        db_session, booking_payload(at(11), at(12), 1), CUSTOMER, now=NOW
    )
    with pytest.raises(CapacityError):
        bookings_service.create_booking(
            db_session, booking_payload(at(11), at(12), 1), CUSTOMER, now=NOW
        )

    bookings_service.confirm_payment(db_session, replacement.id, now=NOW)
    db_session.expire_all()
    scheduler = CapacityScheduler(db_session, get_config_snapshot(db_session), NOW)
    assert scheduler.usage_by_bucket(at(10), at(13)) == {at(10): 0, at(11): 3, at(12): 2}


def test_admin_delete_removes_job_override_rows(db_session, confirmed_booking):
    booking = confirmed_booking(at(10), at(12))
    job = jobs_service.materialize_job(
        db_session, JobCreate(booking_id=booking.id), ADMIN, now=NOW
    )
    jobs_service.override_job_status(
        db_session, job.id, JobStatusEnum.EN_ROUTE, ADMIN, note="left early", now=NOW
    )

    bookings_service.admin_delete_booking(db_session, booking.id, now=NOW)

    assert db_session.execute(select(Job)).scalars().all() == []
    assert db_session.execute(select(JobStatusOverride)).scalars().all() == []
