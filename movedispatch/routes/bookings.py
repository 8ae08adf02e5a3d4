from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..actors import (
    Actor,
    ActorRole,
    get_actor,
    require_roles,
    require_webhook_secret,
)
from ..db import get_db
from ..errors import InvalidRequestError
from ..models import BookingStatusEnum
from ..schemas import (
    BookingCreate,
    BookingHold,
    BookingRead,
    BookingReschedule,
    SalesCommissionRead,
)
from ..services import billing as billing_service
from ..services import bookings as bookings_service

router = APIRouter(prefix="/bookings")


@router.post("", response_model=BookingHold, status_code=201)
def create_booking(
    payload: BookingCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> BookingHold:
    booking = bookings_service.create_booking(db, payload, actor)
    return BookingHold(
        booking_id=booking.id, hold_expires_at_utc=booking.hold_expires_at_utc
    )


@router.get("", response_model=list[BookingRead])
def list_bookings(
    status: str | None = Query(None),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> list[BookingRead]:
    status_filter = None
    if status:
        try:
            status_filter = BookingStatusEnum(status)
        except ValueError:
            raise InvalidRequestError(f"Unknown booking status: {status}.") from None
    return bookings_service.list_bookings(db, actor, status_filter)


@router.get("/{booking_id}", response_model=BookingRead)
def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> BookingRead:
    booking = bookings_service.get_booking(db, booking_id)
    bookings_service.check_visible(booking, actor)
    return booking


@router.post(
    "/{booking_id}/confirm-payment",
    response_model=BookingRead,
    dependencies=[Depends(require_webhook_secret)],
)
def confirm_payment(booking_id: int, db: Session = Depends(get_db)) -> BookingRead:
    return bookings_service.confirm_payment(db, booking_id)


@router.post(
    "/{booking_id}/payment-failed",
    response_model=BookingRead,
    dependencies=[Depends(require_webhook_secret)],
)
def payment_failed(booking_id: int, db: Session = Depends(get_db)) -> BookingRead:
    return bookings_service.fail_payment(db, booking_id)


@router.post("/{booking_id}/reschedule", response_model=BookingHold)
def reschedule_booking(
    booking_id: int,
    payload: BookingReschedule,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> BookingHold:
    replacement = bookings_service.reschedule_booking(db, booking_id, payload, actor)
    return BookingHold(
        booking_id=replacement.id,
        hold_expires_at_utc=replacement.hold_expires_at_utc,
    )


@router.post("/{booking_id}/cancel", response_model=BookingRead)
def cancel_booking(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> BookingRead:
    return bookings_service.cancel_booking(db, booking_id, actor)


@router.delete("/{booking_id}")
def delete_booking(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> dict:
    require_roles(actor)
    bookings_service.admin_delete_booking(db, booking_id)
    return {"message": f"Booking {booking_id} deleted."}


@router.post("/{booking_id}/commission/finalize", response_model=SalesCommissionRead)
def finalize_commission(
    booking_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> SalesCommissionRead:
    require_roles(actor, ActorRole.SALES)
    return billing_service.finalize_commission(db, booking_id)
