"""Booking lifecycle.

Every status change goes through :func:`_transition`, which checks
``BOOKING_TRANSITIONS``. Transitions that stop a booking from holding
capacity release its reservation exactly once; transitions that introduce a
new window reserve exactly once. A reschedule keeps the original permanent
reservation until the new window is paid for, then swaps the two inside one
transaction.
"""
from datetime import datetime, timedelta
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..actors import Actor, ActorRole
from ..errors import (
    CapacityError,
    CapacityErrorKind,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    StateError,
)
from ..models import (
    Booking,
    BookingStatusEnum,
    Job,
    JobStatusEnum,
    JobStatusOverride,
    SalesCommission,
    SpecialItemRate,
    TimeEntry,
)
from ..models.base import utcnow
from ..schemas import BookingCreate, BookingReschedule
from .billing import refresh_commission
from .capacity import CapacityScheduler, normalize_window
from .config_store import ConfigSnapshot, get_config_snapshot
from .transactions import transaction

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: dict[BookingStatusEnum, frozenset[BookingStatusEnum]] = {
    BookingStatusEnum.PENDING_PAYMENT: frozenset(
        {
            BookingStatusEnum.CONFIRMED,
            BookingStatusEnum.EXPIRED,
            BookingStatusEnum.CANCELED,
        }
    ),
    BookingStatusEnum.CONFIRMED: frozenset(
        {
            BookingStatusEnum.RESCHEDULE_PENDING_PAYMENT,
            BookingStatusEnum.CANCELED,
        }
    ),
    BookingStatusEnum.RESCHEDULE_PENDING_PAYMENT: frozenset(
        {
            BookingStatusEnum.RESCHEDULED,
            BookingStatusEnum.CONFIRMED,
        }
    ),
    BookingStatusEnum.RESCHEDULED: frozenset(),
    BookingStatusEnum.CANCELED: frozenset(),
    BookingStatusEnum.EXPIRED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in BOOKING_TRANSITIONS.items() if not targets
)

# Statuses in which a payment has been received for the booking.
PAID_STATUSES = frozenset(
    {
        BookingStatusEnum.CONFIRMED,
        BookingStatusEnum.RESCHEDULE_PENDING_PAYMENT,
        BookingStatusEnum.RESCHEDULED,
    }
)


def can_transition(current: BookingStatusEnum, target: BookingStatusEnum) -> bool:
    return target in BOOKING_TRANSITIONS[BookingStatusEnum(current)]


def _transition(booking: Booking, target: BookingStatusEnum) -> None:
    current = BookingStatusEnum(booking.status)
    if not can_transition(current, target):
        raise StateError(
            f"Booking {booking.id} cannot move from {current.value} to {target.value}."
        )
    booking.status = target
    logger.info(
        "Booking %s: %s -> %s", booking.id, current.value, target.value
    )


def _lock_booking(db: Session, booking_id: int) -> Booking:
    booking = db.execute(
        select(Booking).where(Booking.id == booking_id).with_for_update()
    ).scalar_one_or_none()
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found.")
    return booking


def _job_for_booking(db: Session, booking_id: int) -> Job | None:
    return db.execute(
        select(Job).where(Job.booking_id == booking_id)
    ).scalar_one_or_none()


def _release_capacity(scheduler: CapacityScheduler, booking: Booking) -> None:
    if booking.reservation_id is not None:
        scheduler.release(booking.reservation_id)
    booking.hold_expires_at_utc = None


def _revert_predecessor(db: Session, booking: Booking) -> None:
    """Put the original booking of an abandoned reschedule back to confirmed."""
    if booking.linked_to_booking_id is None:
        return
    predecessor = _lock_booking(db, booking.linked_to_booking_id)
    if predecessor.status == BookingStatusEnum.RESCHEDULE_PENDING_PAYMENT:
        _transition(predecessor, BookingStatusEnum.CONFIRMED)


def _check_owner(booking: Booking, actor: Actor) -> None:
    if actor.role == ActorRole.CUSTOMER and booking.customer_user_id != actor.user_id:
        raise PermissionDeniedError("You can only manage your own bookings.")


def _validate_trucks(trucks: int, config: ConfigSnapshot) -> None:
    if trucks < 1:
        raise InvalidRequestError("At least one truck must be requested.")
    cap = config.max_trucks_per_booking
    if cap is not None and trucks > cap:
        raise CapacityError(
            CapacityErrorKind.OVER_CAP,
            f"A booking may request at most {cap} trucks.",
        )


def _validate_window(
    start: datetime, end: datetime, now: datetime
) -> tuple[datetime, datetime]:
    start, end = normalize_window(start, end)
    if start < now:
        raise CapacityError(
            CapacityErrorKind.INVALID_WINDOW, "The window must start in the future."
        )
    return start, end


def _sales_amount(
    requested: int | None,
    actor: Actor,
    default: int,
    low: int,
    high: int,
    label: str,
) -> int:
    if requested is None:
        return default
    if actor.role == ActorRole.SALES:
        if not low <= requested <= high:
            raise InvalidRequestError(
                f"{label} must be between {low} and {high} cents."
            )
        return requested
    if actor.is_admin:
        return requested
    raise PermissionDeniedError(f"Only sales staff can set the {label.lower()}.")


def _validate_special_items(db: Session, codes: list[str]) -> list[str]:
    if not codes:
        return []
    active = set(
        db.execute(
            select(SpecialItemRate.code).where(
                SpecialItemRate.code.in_(codes), SpecialItemRate.is_active.is_(True)
            )
        ).scalars()
    )
    unknown = sorted(set(codes) - active)
    if unknown:
        raise InvalidRequestError(f"Unknown special items: {', '.join(unknown)}.")
    return list(codes)


def create_booking(
    db: Session,
    payload: BookingCreate,
    actor: Actor,
    now: datetime | None = None,
) -> Booking:
    now = now or utcnow()
    with transaction(db):
        config = get_config_snapshot(db)
        _validate_trucks(payload.requested_trucks, config)
        start, end = _validate_window(payload.start_utc, payload.end_utc, now)

        deposit = _sales_amount(
            payload.deposit_amount_cents,
            actor,
            config.customer_deposit_cents,
            config.sales_deposit_min_cents,
            config.sales_deposit_max_cents,
            "Deposit",
        )
        trip_fee = None
        if payload.trip_fee_cents is not None:
            trip_fee = _sales_amount(
                payload.trip_fee_cents,
                actor,
                config.sales_trip_fee_min_cents,
                config.sales_trip_fee_min_cents,
                config.sales_trip_fee_max_cents,
                "Trip fee",
            )
        special_items = _validate_special_items(db, payload.special_items)

        sales_user_id = payload.sales_user_id if actor.is_admin else None
        if actor.role == ActorRole.SALES:
            sales_user_id = actor.user_id

        hold_until = now + timedelta(minutes=config.hold_minutes)
        scheduler = CapacityScheduler(db, config, now)
        reservation = scheduler.reserve(
            start, end, payload.requested_trucks, hold_until=hold_until
        )
        booking = Booking(
            customer_user_id=(
                actor.user_id if actor.role == ActorRole.CUSTOMER else None
            ),
            sales_user_id=sales_user_id,
            reservation_id=reservation.id,
            status=BookingStatusEnum.PENDING_PAYMENT,
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
            customer_phone=payload.customer_phone,
            move_from_address=payload.move_from_address,
            move_to_address=payload.move_to_address,
            notes=payload.notes,
            start_utc=start,
            end_utc=end,
            requested_trucks=payload.requested_trucks,
            deposit_amount_cents=deposit,
            trip_fee_cents=trip_fee,
            special_items=special_items,
            hold_expires_at_utc=hold_until,
            created_at_utc=now,
            updated_at_utc=now,
        )
        db.add(booking)
        db.flush()
        logger.info(
            "Booking %s created for %s trucks, hold until %s",
            booking.id,
            booking.requested_trucks,
            hold_until,
        )
    db.refresh(booking)
    return booking


def _expire(
    db: Session, booking: Booking, scheduler: CapacityScheduler
) -> None:
    _transition(booking, BookingStatusEnum.EXPIRED)
    _release_capacity(scheduler, booking)
    _revert_predecessor(db, booking)


def _complete_reschedule(
    db: Session,
    booking: Booking,
    scheduler: CapacityScheduler,
    config: ConfigSnapshot,
    now: datetime,
) -> None:
    predecessor = _lock_booking(db, booking.linked_to_booking_id)
    _transition(predecessor, BookingStatusEnum.RESCHEDULED)
    _release_capacity(scheduler, predecessor)

    job = _job_for_booking(db, predecessor.id)
    if job is not None:
        job.booking_id = booking.id
        job.scheduled_start_utc = booking.start_utc
        logger.info("Job %s moved to booking %s", job.id, booking.id)

    commission = db.execute(
        select(SalesCommission).where(SalesCommission.booking_id == predecessor.id)
    ).scalar_one_or_none()
    if commission is not None:
        commission.booking_id = booking.id
    db.flush()
    refresh_commission(db, booking, config, now)


def confirm_payment(
    db: Session, booking_id: int, now: datetime | None = None
) -> Booking:
    """Handle the payment-succeeded webhook. Safe to call repeatedly."""
    now = now or utcnow()
    lapsed_error: CapacityError | None = None
    with transaction(db):
        booking = _lock_booking(db, booking_id)
        if booking.status in PAID_STATUSES:
            return booking
        if booking.status != BookingStatusEnum.PENDING_PAYMENT:
            raise StateError(
                f"Booking {booking.id} is {booking.status.value}; payment cannot be applied."
            )

        config = get_config_snapshot(db)
        scheduler = CapacityScheduler(db, config, now)
        try:
            scheduler.make_permanent(booking.reservation_id)
        except CapacityError as exc:
            logger.warning(
                "Payment for booking %s arrived after its hold lapsed; expiring",
                booking.id,
            )
            _expire(db, booking, scheduler)
            lapsed_error = exc
        else:
            _transition(booking, BookingStatusEnum.CONFIRMED)
            booking.hold_expires_at_utc = None
            if booking.linked_to_booking_id is not None:
                _complete_reschedule(db, booking, scheduler, config, now)
            else:
                refresh_commission(db, booking, config, now)
    if lapsed_error is not None:
        raise lapsed_error
    db.refresh(booking)
    return booking


def fail_payment(db: Session, booking_id: int, now: datetime | None = None) -> Booking:
    """Handle the payment-failed webhook for a booking awaiting payment."""
    now = now or utcnow()
    with transaction(db):
        booking = _lock_booking(db, booking_id)
        if booking.status in (BookingStatusEnum.CANCELED, BookingStatusEnum.EXPIRED):
            return booking
        if booking.status != BookingStatusEnum.PENDING_PAYMENT:
            raise StateError(
                f"Booking {booking.id} is {booking.status.value}; no payment is pending."
            )
        _transition(booking, BookingStatusEnum.CANCELED)
        scheduler = CapacityScheduler(db, get_config_snapshot(db), now)
        _release_capacity(scheduler, booking)
        _revert_predecessor(db, booking)
    db.refresh(booking)
    return booking


def expire_booking(db: Session, booking_id: int, now: datetime | None = None) -> Booking:
    now = now or utcnow()
    with transaction(db):
        booking = _lock_booking(db, booking_id)
        if booking.status != BookingStatusEnum.PENDING_PAYMENT:
            raise StateError(
                f"Booking {booking.id} is {booking.status.value}; only unpaid holds expire."
            )
        if booking.hold_expires_at_utc is None or booking.hold_expires_at_utc > now:
            raise StateError(f"The hold on booking {booking.id} has not lapsed yet.")
        scheduler = CapacityScheduler(db, get_config_snapshot(db), now)
        _expire(db, booking, scheduler)
    db.refresh(booking)
    return booking


def reschedule_booking(
    db: Session,
    booking_id: int,
    payload: BookingReschedule,
    actor: Actor,
    now: datetime | None = None,
) -> Booking:
    """Hold a new window for a confirmed booking.

    Returns the new linked booking awaiting payment. The original booking
    keeps its reservation until that payment arrives. Both reservations share
    a lineage, so the overlap between the old and new window is only counted
    once. If the new window cannot be reserved nothing is changed.
    """
    now = now or utcnow()
    with transaction(db):
        original = _lock_booking(db, booking_id)
        _check_owner(original, actor)
        if not can_transition(
            original.status, BookingStatusEnum.RESCHEDULE_PENDING_PAYMENT
        ):
            raise StateError(
                f"Booking {original.id} is {original.status.value} and cannot be rescheduled."
            )
        job = _job_for_booking(db, original.id)
        if job is not None and job.status != JobStatusEnum.SCHEDULED:
            raise StateError(
                f"Job {job.id} is already {job.status.value}; the booking cannot be rescheduled."
            )

        config = get_config_snapshot(db)
        lineage_id = (
            original.reservation.lineage_key if original.reservation else None
        )
        _validate_trucks(payload.new_requested_trucks, config)
        start, end = _validate_window(payload.new_start_utc, payload.new_end_utc, now)
        fee = _sales_amount(
            payload.reschedule_fee_cents,
            actor,
            config.customer_reschedule_fee_cents,
            config.sales_reschedule_fee_min_cents,
            config.sales_reschedule_fee_max_cents,
            "Reschedule fee",
        )

        hold_until = now + timedelta(minutes=config.hold_minutes)
        scheduler = CapacityScheduler(db, config, now)
        reservation = scheduler.reserve(
            start,
            end,
            payload.new_requested_trucks,
            hold_until=hold_until,
            lineage_id=lineage_id,
        )
        replacement = Booking(
            customer_user_id=original.customer_user_id,
            sales_user_id=original.sales_user_id,
            linked_to_booking_id=original.id,
            reservation_id=reservation.id,
            status=BookingStatusEnum.PENDING_PAYMENT,
            customer_name=original.customer_name,
            customer_email=original.customer_email,
            customer_phone=original.customer_phone,
            move_from_address=original.move_from_address,
            move_to_address=original.move_to_address,
            notes=original.notes,
            start_utc=start,
            end_utc=end,
            requested_trucks=payload.new_requested_trucks,
            deposit_amount_cents=original.deposit_amount_cents,
            reschedule_fee_amount_cents=fee,
            trip_fee_cents=original.trip_fee_cents,
            special_items=list(original.special_items or []),
            hold_expires_at_utc=hold_until,
            created_at_utc=now,
            updated_at_utc=now,
        )
        db.add(replacement)
        _transition(original, BookingStatusEnum.RESCHEDULE_PENDING_PAYMENT)
        db.flush()
        logger.info(
            "Booking %s rescheduling to booking %s", original.id, replacement.id
        )
    db.refresh(replacement)
    return replacement


def _remove_job(db: Session, job: Job) -> None:
    # SQLite does not enforce ON DELETE CASCADE, so dependents go first.
    for model in (TimeEntry, JobStatusOverride):
        db.execute(model.__table__.delete().where(model.job_id == job.id))
    db.delete(job)


def cancel_booking(
    db: Session,
    booking_id: int,
    actor: Actor,
    now: datetime | None = None,
) -> Booking:
    now = now or utcnow()
    with transaction(db):
        booking = _lock_booking(db, booking_id)
        _check_owner(booking, actor)
        _transition(booking, BookingStatusEnum.CANCELED)

        job = _job_for_booking(db, booking.id)
        if job is not None:
            if job.status != JobStatusEnum.SCHEDULED:
                raise StateError(
                    f"Job {job.id} is already {job.status.value}; the booking cannot be canceled."
                )
            _remove_job(db, job)

        scheduler = CapacityScheduler(db, get_config_snapshot(db), now)
        _release_capacity(scheduler, booking)
        _revert_predecessor(db, booking)
        db.execute(
            SalesCommission.__table__.delete().where(
                SalesCommission.booking_id == booking.id,
                SalesCommission.is_final.is_(False),
            )
        )
    db.refresh(booking)
    return booking


def admin_delete_booking(
    db: Session, booking_id: int, now: datetime | None = None
) -> None:
    """Delete a booking outright, bypassing the state machine."""
    now = now or utcnow()
    with transaction(db):
        booking = _lock_booking(db, booking_id)
        scheduler = CapacityScheduler(db, get_config_snapshot(db), now)
        _release_capacity(scheduler, booking)
        _revert_predecessor(db, booking)

        successors = db.execute(
            select(Booking).where(Booking.linked_to_booking_id == booking.id)
        ).scalars().all()
        for successor in successors:
            if successor.status == BookingStatusEnum.PENDING_PAYMENT:
                _transition(successor, BookingStatusEnum.CANCELED)
                _release_capacity(scheduler, successor)
            successor.linked_to_booking_id = None

        job = _job_for_booking(db, booking.id)
        if job is not None:
            _remove_job(db, job)
        db.execute(
            SalesCommission.__table__.delete().where(
                SalesCommission.booking_id == booking.id
            )
        )
        db.flush()
        db.delete(booking)
        logger.warning("Booking %s deleted by admin", booking_id)


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found.")
    return booking


def check_visible(booking: Booking, actor: Actor) -> None:
    if actor.is_admin or actor.role == ActorRole.MOVER:
        return
    if actor.role == ActorRole.SALES and booking.sales_user_id == actor.user_id:
        return
    if actor.role == ActorRole.CUSTOMER and booking.customer_user_id == actor.user_id:
        return
    raise PermissionDeniedError("You cannot view this booking.")


def list_bookings(
    db: Session, actor: Actor, status: BookingStatusEnum | None = None
) -> list[Booking]:
    query = select(Booking)
    if actor.role == ActorRole.CUSTOMER:
        query = query.where(Booking.customer_user_id == actor.user_id)
    elif actor.role == ActorRole.SALES:
        query = query.where(Booking.sales_user_id == actor.user_id)
    elif not actor.is_admin:
        raise PermissionDeniedError("This action is not permitted for your role.")
    if status is not None:
        query = query.where(Booking.status == status)
    return list(db.execute(query.order_by(Booking.start_utc.asc())).scalars().all())


def expired_hold_ids(db: Session, now: datetime) -> list[int]:
    return list(
        db.execute(
            select(Booking.id)
            .where(
                Booking.status == BookingStatusEnum.PENDING_PAYMENT,
                Booking.hold_expires_at_utc.is_not(None),
                Booking.hold_expires_at_utc <= now,
            )
            .order_by(Booking.hold_expires_at_utc.asc())
        ).scalars()
    )
