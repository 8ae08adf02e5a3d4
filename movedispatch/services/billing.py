"""Invoice previews and sales commissions.

Invoice previews are pure reads: the same job, config and tip always give
the same numbers. Missing optional data never raises; a policy default is
substituted and a flag naming the substitution is added to the preview.

Labor policy: each crew member is billed at their own hourly rate for the
full billed duration. A job with no crew is billed as one member at the
configured default rate.
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import InvalidRequestError, NotFoundError, StateError
from ..models import (
    Booking,
    BookingStatusEnum,
    Job,
    JobStatusEnum,
    MaterialRate,
    SalesCommission,
    SpecialItemRate,
)
from ..models.base import utcnow
from .config_store import ConfigSnapshot, get_config_snapshot
from .transactions import transaction

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = Decimal("3600")
HOURS_QUANTIZE = Decimal("0.0001")
BPS_DENOMINATOR = 10000

# Bookings whose move is still going ahead. Only these earn a commission.
COMMISSIONABLE_STATUSES = frozenset(
    {BookingStatusEnum.CONFIRMED, BookingStatusEnum.RESCHEDULE_PENDING_PAYMENT}
)

FLAG_MISSING_ACTUAL_TIMES = "missing_actual_times"
FLAG_INVALID_ACTUAL_TIMES = "invalid_actual_times"
FLAG_MINIMUM_HOURS_APPLIED = "minimum_hours_applied"
FLAG_NO_CREW_ASSIGNED = "no_crew_assigned"
FLAG_DEFAULT_TRIP_FEE = "default_trip_fee"
FLAG_UNKNOWN_SPECIAL_ITEM = "unknown_special_item"
FLAG_UNKNOWN_MATERIAL = "unknown_material"
FLAG_OVERPAID = "overpaid"


@dataclass(frozen=True)
class InvoiceLine:
    code: str
    label: str
    quantity: int
    unit_price_cents: int
    amount_cents: int


@dataclass(frozen=True)
class InvoicePreview:
    job_id: int
    booking_id: int
    billed_hours: float
    crew_size: int
    labor_amount_cents: int
    trip_fee_cents: int
    special_items: list[InvoiceLine]
    special_items_total_cents: int
    materials: list[InvoiceLine]
    materials_total_cents: int
    base_amount_cents: int
    tip_amount_cents: int
    deposit_amount_cents: int
    reschedule_fees_paid_cents: int
    total_balance_cents: int
    overpaid: bool
    overpaid_amount_cents: int
    flags: list[str] = field(default_factory=list)


def _cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def billed_hours_for(
    actual_start: datetime | None,
    actual_end: datetime | None,
    config: ConfigSnapshot,
    flags: list[str],
) -> Decimal:
    minimum = Decimal(config.minimum_billed_minutes) / Decimal(60)
    if actual_start is None or actual_end is None:
        flags.append(FLAG_MISSING_ACTUAL_TIMES)
        return minimum
    if actual_end <= actual_start:
        flags.append(FLAG_INVALID_ACTUAL_TIMES)
        return minimum
    seconds = Decimal((actual_end - actual_start).total_seconds())
    hours = seconds / SECONDS_PER_HOUR
    if hours < minimum:
        flags.append(FLAG_MINIMUM_HOURS_APPLIED)
        return minimum
    return hours


def _rate_lines(
    quantities: Counter,
    prices: dict[str, tuple[str, int]],
    unknown_flag: str,
    flags: list[str],
) -> list[InvoiceLine]:
    lines: list[InvoiceLine] = []
    for code in sorted(quantities):
        quantity = quantities[code]
        if quantity <= 0:
            continue
        if code not in prices:
            flags.append(f"{unknown_flag}:{code}")
            continue
        label, unit_price = prices[code]
        lines.append(
            InvoiceLine(
                code=code,
                label=label,
                quantity=quantity,
                unit_price_cents=unit_price,
                amount_cents=unit_price * quantity,
            )
        )
    return lines


def reschedule_fees_paid(booking: Booking) -> int:
    """Reschedule fees charged along the booking's lineage.

    Each fee was collected with the payment that confirmed its booking, so
    it is reported beside the balance and never deducted from it.
    """
    total = 0
    current: Booking | None = booking
    while current is not None:
        total += current.reschedule_fee_amount_cents or 0
        current = current.linked_to
    return total


def _load_job(db: Session, job_id: int) -> Job:
    job = db.get(Job, job_id)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found.")
    return job


def compute_invoice_preview(
    db: Session,
    job_id: int,
    tip_amount_cents: int = 0,
    config: ConfigSnapshot | None = None,
) -> InvoicePreview:
    if tip_amount_cents < 0:
        raise InvalidRequestError("Tip amount cannot be negative.")
    config = config or get_config_snapshot(db)
    job = _load_job(db, job_id)
    booking = job.booking
    flags: list[str] = []

    hours = billed_hours_for(job.actual_start_utc, job.actual_end_utc, config, flags)

    rates = [member.hourly_rate_cents for member in job.crew]
    if not rates:
        flags.append(FLAG_NO_CREW_ASSIGNED)
        rates = [config.default_hourly_rate_cents]
    labor_amount = _cents(sum((hours * Decimal(rate) for rate in rates), Decimal("0")))

    if booking.trip_fee_cents is None:
        flags.append(FLAG_DEFAULT_TRIP_FEE)
        trip_fee = config.sales_trip_fee_min_cents
    else:
        trip_fee = booking.trip_fee_cents

    special_prices = {
        rate.code: (rate.label, rate.price_cents)
        for rate in db.execute(select(SpecialItemRate)).scalars()
    }
    special_lines = _rate_lines(
        Counter(booking.special_items or []),
        special_prices,
        FLAG_UNKNOWN_SPECIAL_ITEM,
        flags,
    )

    material_prices = {
        rate.code: (rate.label, rate.unit_price_cents)
        for rate in db.execute(select(MaterialRate)).scalars()
    }
    material_lines = _rate_lines(
        Counter({item.material_code: item.quantity for item in job.materials}),
        material_prices,
        FLAG_UNKNOWN_MATERIAL,
        flags,
    )

    special_total = sum(line.amount_cents for line in special_lines)
    materials_total = sum(line.amount_cents for line in material_lines)
    base_amount = labor_amount + trip_fee + special_total + materials_total
    deposit = booking.deposit_amount_cents
    total_balance = base_amount + tip_amount_cents - deposit

    overpaid_amount = 0
    if total_balance < 0:
        # No refund policy: clamp and leave the excess for manual review.
        overpaid_amount = -total_balance
        total_balance = 0
        flags.append(FLAG_OVERPAID)

    return InvoicePreview(
        job_id=job.id,
        booking_id=booking.id,
        billed_hours=float(hours.quantize(HOURS_QUANTIZE, rounding=ROUND_HALF_UP)),
        crew_size=len(rates),
        labor_amount_cents=labor_amount,
        trip_fee_cents=trip_fee,
        special_items=special_lines,
        special_items_total_cents=special_total,
        materials=material_lines,
        materials_total_cents=materials_total,
        base_amount_cents=base_amount,
        tip_amount_cents=tip_amount_cents,
        deposit_amount_cents=deposit,
        reschedule_fees_paid_cents=reschedule_fees_paid(booking),
        total_balance_cents=total_balance,
        overpaid=overpaid_amount > 0,
        overpaid_amount_cents=overpaid_amount,
        flags=flags,
    )


def commission_amount_cents(deposit_amount_cents: int, config: ConfigSnapshot) -> int:
    amount = deposit_amount_cents * config.sales_commission_rate_bps // BPS_DENOMINATOR
    if config.commission_cap_cents is not None:
        amount = min(amount, config.commission_cap_cents)
    return max(amount, 0)


def refresh_commission(
    db: Session,
    booking: Booking,
    config: ConfigSnapshot,
    now: datetime | None = None,
) -> SalesCommission | None:
    """Recompute a booking's commission without committing.

    Final commissions are never touched again. A provisional one is
    recomputed from scratch and becomes final when the booking's job has
    reached completed. Bookings outside ``COMMISSIONABLE_STATUSES`` are
    left alone.
    """
    if booking.sales_user_id is None:
        return None
    if booking.status not in COMMISSIONABLE_STATUSES:
        return None
    commission = db.execute(
        select(SalesCommission).where(SalesCommission.booking_id == booking.id)
    ).scalar_one_or_none()
    if commission is not None and commission.is_final:
        return commission
    if commission is None:
        commission = SalesCommission(
            booking_id=booking.id,
            sales_user_id=booking.sales_user_id,
            deposit_amount_cents=0,
            commission_amount_cents=0,
            is_final=False,
        )
        db.add(commission)

    commission.sales_user_id = booking.sales_user_id
    commission.deposit_amount_cents = booking.deposit_amount_cents
    commission.commission_amount_cents = commission_amount_cents(
        booking.deposit_amount_cents, config
    )
    job = db.execute(
        select(Job).where(Job.booking_id == booking.id)
    ).scalar_one_or_none()
    if job is not None and job.status == JobStatusEnum.COMPLETED:
        commission.is_final = True
        commission.finalized_at_utc = now or utcnow()
        logger.info(
            "Commission for booking %s finalized at %s cents",
            booking.id,
            commission.commission_amount_cents,
        )
    db.flush()
    return commission


def _current_booking(db: Session, booking: Booking) -> Booking:
    """Follow a rescheduled booking to the paid booking that replaced it."""
    while booking.status == BookingStatusEnum.RESCHEDULED:
        successor = db.execute(
            select(Booking).where(
                Booking.linked_to_booking_id == booking.id,
                Booking.status.in_(
                    [
                        BookingStatusEnum.CONFIRMED,
                        BookingStatusEnum.RESCHEDULE_PENDING_PAYMENT,
                        BookingStatusEnum.RESCHEDULED,
                    ]
                ),
            )
        ).scalar_one_or_none()
        if successor is None:
            break
        booking = successor
    return booking


def finalize_commission(
    db: Session, booking_id: int, now: datetime | None = None
) -> SalesCommission:
    with transaction(db):
        booking = db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        booking = _current_booking(db, booking)
        if booking.status not in COMMISSIONABLE_STATUSES:
            raise StateError(
                f"Booking {booking.id} is {booking.status.value}; it earns no commission."
            )
        if booking.sales_user_id is None:
            raise InvalidRequestError(
                f"Booking {booking_id} has no salesperson to pay commission to."
            )
        commission = refresh_commission(db, booking, get_config_snapshot(db), now)
    db.refresh(commission)
    return commission


def list_sales_commissions(db: Session, sales_user_id: int) -> list[dict]:
    rows = db.execute(
        select(SalesCommission, Booking, Job)
        .join(Booking, SalesCommission.booking_id == Booking.id)
        .outerjoin(Job, Job.booking_id == Booking.id)
        .where(SalesCommission.sales_user_id == sales_user_id)
        .order_by(SalesCommission.created_at_utc.desc())
    ).all()
    return [
        {
            "id": commission.id,
            "booking_id": booking.id,
            "job_id": job.id if job else None,
            "customer_name": booking.customer_name,
            "move_date": booking.start_utc,
            "deposit_amount_cents": commission.deposit_amount_cents,
            "commission_amount_cents": commission.commission_amount_cents,
            "is_final": commission.is_final,
            "job_status": job.status.value if job else None,
            "created_at_utc": commission.created_at_utc,
        }
        for commission, booking, job in rows
    ]


def sales_stats(db: Session, sales_user_id: int) -> dict[str, int]:
    commissions = db.execute(
        select(SalesCommission).where(SalesCommission.sales_user_id == sales_user_id)
    ).scalars()
    stats = {
        "total_commission_cents": 0,
        "pending_commission_cents": 0,
        "completed_moves_count": 0,
        "pending_moves_count": 0,
    }
    for commission in commissions:
        if commission.is_final:
            stats["total_commission_cents"] += commission.commission_amount_cents
            stats["completed_moves_count"] += 1
        else:
            stats["pending_commission_cents"] += commission.commission_amount_cents
            stats["pending_moves_count"] += 1
    return stats
