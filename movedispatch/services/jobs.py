"""Job execution lifecycle.

Non-admin status changes must follow ``JOB_TRANSITIONS`` (plus reporting an
issue from any open state and resuming from it). Admins may force any status
through :func:`override_job_status`; that path records a JobStatusOverride row
and shares actual-time stamping and the on-enter-completed hook with the
natural path, so a forced completion bills and finalizes the commission the
same way.
"""
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..actors import Actor, ActorRole, require_roles
from ..errors import InvalidRequestError, NotFoundError, StateError
from ..models import (
    Booking,
    BookingStatusEnum,
    Employee,
    Job,
    JobMaterial,
    JobStatusEnum,
    JobStatusOverride,
    MaterialRate,
    TimeEntry,
    Truck,
)
from ..models.base import as_utc_naive, utcnow
from ..schemas import JobCreate, JobUpdate, MaterialQuantity
from .billing import refresh_commission
from .config_store import get_config_snapshot
from .employee_availability import unavailable_employees
from .transactions import transaction

logger = logging.getLogger(__name__)

JOB_TRANSITIONS: dict[JobStatusEnum, frozenset[JobStatusEnum]] = {
    JobStatusEnum.SCHEDULED: frozenset({JobStatusEnum.EN_ROUTE}),
    JobStatusEnum.EN_ROUTE: frozenset({JobStatusEnum.STARTED}),
    JobStatusEnum.STARTED: frozenset({JobStatusEnum.FINISHED_LOADING}),
    JobStatusEnum.FINISHED_LOADING: frozenset({JobStatusEnum.START_UNLOADING}),
    JobStatusEnum.START_UNLOADING: frozenset(
        {JobStatusEnum.COMPLETED, JobStatusEnum.PAYMENT_PENDING}
    ),
    JobStatusEnum.PAYMENT_PENDING: frozenset({JobStatusEnum.COMPLETED}),
    JobStatusEnum.COMPLETED: frozenset(),
    JobStatusEnum.ISSUE_REPORTED: frozenset(),
}

DISPATCH_ROLES = (ActorRole.MOVER, ActorRole.SALES)


def parse_job_status(value: str) -> JobStatusEnum:
    try:
        return JobStatusEnum(value)
    except ValueError:
        raise InvalidRequestError(f"Unknown job status: {value}.") from None


def is_natural_transition(job: Job, target: JobStatusEnum) -> bool:
    current = JobStatusEnum(job.status)
    if current == JobStatusEnum.COMPLETED:
        return False
    if target == JobStatusEnum.ISSUE_REPORTED:
        return current != JobStatusEnum.ISSUE_REPORTED
    if current == JobStatusEnum.ISSUE_REPORTED:
        return target == job.status_before_issue
    return target in JOB_TRANSITIONS[current]


def get_job(db: Session, job_id: int) -> Job:
    job = db.get(Job, job_id)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found.")
    return job


def _lock_job(db: Session, job_id: int) -> Job:
    job = db.execute(
        select(Job).where(Job.id == job_id).with_for_update()
    ).scalar_one_or_none()
    if job is None:
        raise NotFoundError(f"Job {job_id} not found.")
    return job


def _load_employees(db: Session, employee_ids: list[int]) -> list[Employee]:
    wanted = list(dict.fromkeys(employee_ids))
    if not wanted:
        return []
    found = {
        employee.id: employee
        for employee in db.execute(
            select(Employee).where(Employee.id.in_(wanted))
        ).scalars()
    }
    missing = [str(employee_id) for employee_id in wanted if employee_id not in found]
    if missing:
        raise NotFoundError(f"Employees not found: {', '.join(missing)}.")
    return [found[employee_id] for employee_id in wanted]


def _warn_unavailable_crew(db: Session, job: Job, crew: list[Employee]) -> None:
    day = job.scheduled_start_utc.date()
    unavailable = unavailable_employees(db, [member.id for member in crew], day)
    for employee_id, reason in sorted(unavailable.items()):
        logger.warning(
            "Employee %s assigned to job %s on %s: %s",
            employee_id,
            job.id,
            day.isoformat(),
            reason,
        )


def _on_enter_completed(db: Session, job: Job, now: datetime) -> None:
    booking = db.get(Booking, job.booking_id)
    commission = refresh_commission(db, booking, get_config_snapshot(db), now)
    if commission is not None:
        logger.info(
            "Job %s completed; commission %s is final", job.id, commission.id
        )


def _stamp_actual_times(job: Job, target: JobStatusEnum, now: datetime) -> None:
    if target == JobStatusEnum.STARTED and job.actual_start_utc is None:
        job.actual_start_utc = now
    if (
        target in (JobStatusEnum.COMPLETED, JobStatusEnum.PAYMENT_PENDING)
        and job.actual_end_utc is None
    ):
        job.actual_end_utc = now


def _apply_natural_transition(
    db: Session, job: Job, target: JobStatusEnum, now: datetime
) -> None:
    current = JobStatusEnum(job.status)
    if target == JobStatusEnum.ISSUE_REPORTED:
        job.status_before_issue = current
    elif current == JobStatusEnum.ISSUE_REPORTED:
        job.status_before_issue = None

    _stamp_actual_times(job, target, now)

    job.status = target
    db.flush()
    logger.info("Job %s: %s -> %s", job.id, current.value, target.value)
    if target == JobStatusEnum.COMPLETED:
        _on_enter_completed(db, job, now)


def _apply_override(
    db: Session,
    job: Job,
    target: JobStatusEnum,
    actor: Actor,
    note: str | None,
    now: datetime,
) -> None:
    current = JobStatusEnum(job.status)
    db.add(
        JobStatusOverride(
            job_id=job.id,
            from_status=current.value,
            to_status=target.value,
            note=note,
            overridden_at=now,
            overridden_by=actor.label,
        )
    )
    job.status_before_issue = current if target == JobStatusEnum.ISSUE_REPORTED else None
    _stamp_actual_times(job, target, now)
    job.status = target
    db.flush()
    logger.warning(
        "Job %s status overridden by %s: %s -> %s",
        job.id,
        actor.label,
        current.value,
        target.value,
    )
    if target == JobStatusEnum.COMPLETED:
        _on_enter_completed(db, job, now)


def materialize_job(
    db: Session,
    payload: JobCreate,
    actor: Actor,
    now: datetime | None = None,
) -> Job:
    """Create the job for a confirmed booking, or return the existing one."""
    require_roles(actor, ActorRole.SALES)
    now = now or utcnow()
    with transaction(db):
        booking = db.get(Booking, payload.booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {payload.booking_id} not found.")
        existing = db.execute(
            select(Job).where(Job.booking_id == booking.id)
        ).scalar_one_or_none()
        if existing is not None:
            return existing
        if booking.status != BookingStatusEnum.CONFIRMED:
            raise StateError(
                f"Booking {booking.id} is {booking.status.value}; only confirmed bookings can be dispatched."
            )
        job = Job(
            booking_id=booking.id,
            status=JobStatusEnum.SCHEDULED,
            scheduled_start_utc=booking.start_utc,
            notes=payload.notes,
            created_at=now,
            updated_at=now,
        )
        job.crew = _load_employees(db, payload.employee_ids)
        db.add(job)
        db.flush()
        _warn_unavailable_crew(db, job, job.crew)
        logger.info("Job %s materialized from booking %s", job.id, booking.id)
    db.refresh(job)
    return job


def transition_job_status(
    db: Session,
    job_id: int,
    target: JobStatusEnum,
    actor: Actor,
    note: str | None = None,
    now: datetime | None = None,
) -> Job:
    require_roles(actor, *DISPATCH_ROLES)
    now = now or utcnow()
    with transaction(db):
        job = _lock_job(db, job_id)
        if is_natural_transition(job, target):
            _apply_natural_transition(db, job, target, now)
        elif actor.is_admin:
            _apply_override(db, job, target, actor, note, now)
        else:
            raise StateError(
                f"Job {job.id} cannot move from {JobStatusEnum(job.status).value} to {target.value}."
            )
    db.refresh(job)
    return job


def override_job_status(
    db: Session,
    job_id: int,
    target: JobStatusEnum,
    actor: Actor,
    note: str | None = None,
    now: datetime | None = None,
) -> Job:
    require_roles(actor, ActorRole.ADMIN)
    now = now or utcnow()
    with transaction(db):
        job = _lock_job(db, job_id)
        _apply_override(db, job, target, actor, note, now)
    db.refresh(job)
    return job


def confirm_final_payment(
    db: Session,
    job_id: int,
    tip_amount_cents: int = 0,
    now: datetime | None = None,
) -> Job:
    """Handle the final-payment webhook: paymentPending -> completed."""
    now = now or utcnow()
    with transaction(db):
        job = _lock_job(db, job_id)
        if job.status == JobStatusEnum.COMPLETED:
            return job
        if job.status != JobStatusEnum.PAYMENT_PENDING:
            raise StateError(
                f"Job {job.id} is {JobStatusEnum(job.status).value}; no final payment is pending."
            )
        job.tip_amount_cents = tip_amount_cents
        _apply_natural_transition(db, job, JobStatusEnum.COMPLETED, now)
    db.refresh(job)
    return job


def assign_crew(
    db: Session,
    job_id: int,
    employee_ids: list[int],
    actor: Actor,
    now: datetime | None = None,
) -> Job:
    """Replace the job's crew.

    Employees dropped from the crew have their open time entries on this job
    closed at ``now``. Members who are off on the job date are still assigned,
    with a warning logged.
    """
    require_roles(actor, *DISPATCH_ROLES)
    now = now or utcnow()
    with transaction(db):
        job = _lock_job(db, job_id)
        crew = _load_employees(db, employee_ids)
        removed = {member.id for member in job.crew} - {member.id for member in crew}
        if removed:
            open_entries = db.execute(
                select(TimeEntry).where(
                    TimeEntry.job_id == job.id,
                    TimeEntry.employee_id.in_(removed),
                    TimeEntry.check_out_utc.is_(None),
                )
            ).scalars()
            for entry in open_entries:
                entry.check_out_utc = max(now, entry.check_in_utc)
                logger.warning(
                    "Closed time entry %s for employee %s removed from job %s",
                    entry.id,
                    entry.employee_id,
                    job.id,
                )
        job.crew = crew
        db.flush()
        _warn_unavailable_crew(db, job, crew)
    db.refresh(job)
    return job


def assign_truck(
    db: Session, job_id: int, truck_id: int | None, actor: Actor
) -> Job:
    require_roles(actor, *DISPATCH_ROLES)
    with transaction(db):
        job = _lock_job(db, job_id)
        if truck_id is not None and truck_id != job.truck_id:
            truck = db.get(Truck, truck_id)
            if truck is None:
                raise NotFoundError(f"Truck {truck_id} not found.")
            if not truck.is_active:
                raise InvalidRequestError(f"Truck {truck.name} is inactive.")
        job.truck_id = truck_id
    db.refresh(job)
    return job


def update_job_details(
    db: Session, job_id: int, payload: JobUpdate, actor: Actor
) -> Job:
    require_roles(actor, *DISPATCH_ROLES)
    changes = payload.model_dump(exclude_unset=True)
    time_fields = {"actual_start_utc", "actual_end_utc"} & set(changes)
    if time_fields and not actor.is_admin:
        raise InvalidRequestError("Only admins can edit actual start and end times.")
    with transaction(db):
        job = _lock_job(db, job_id)
        for name, value in changes.items():
            if name in time_fields and value is not None:
                value = as_utc_naive(value)
            setattr(job, name, value)
        if (
            job.actual_start_utc is not None
            and job.actual_end_utc is not None
            and job.actual_end_utc <= job.actual_start_utc
        ):
            raise InvalidRequestError("Actual end must be after actual start.")
    db.refresh(job)
    return job


def record_materials(
    db: Session, job_id: int, materials: list[MaterialQuantity], actor: Actor
) -> Job:
    """Set material quantities used on a job. A quantity of 0 removes the line."""
    require_roles(actor, *DISPATCH_ROLES)
    with transaction(db):
        job = _lock_job(db, job_id)
        codes = {item.material_code for item in materials}
        known = set(
            db.execute(
                select(MaterialRate.code).where(
                    MaterialRate.code.in_(codes), MaterialRate.is_active.is_(True)
                )
            ).scalars()
        )
        unknown = sorted(codes - known)
        if unknown:
            raise InvalidRequestError(f"Unknown materials: {', '.join(unknown)}.")

        current = {line.material_code: line for line in job.materials}
        for item in materials:
            line = current.get(item.material_code)
            if item.quantity == 0:
                if line is not None:
                    job.materials.remove(line)
                    del current[item.material_code]
                continue
            if line is None:
                line = JobMaterial(
                    material_code=item.material_code, quantity=item.quantity
                )
                job.materials.append(line)
                current[item.material_code] = line
            else:
                line.quantity = item.quantity
        db.flush()
    db.refresh(job)
    return job


def list_jobs(
    db: Session,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    employee_id: int | None = None,
    status: JobStatusEnum | None = None,
) -> list[Job]:
    query = select(Job)
    if date_from is not None:
        query = query.where(Job.scheduled_start_utc >= as_utc_naive(date_from))
    if date_to is not None:
        query = query.where(Job.scheduled_start_utc < as_utc_naive(date_to))
    if employee_id is not None:
        query = query.where(Job.crew.any(Employee.id == employee_id))
    if status is not None:
        query = query.where(Job.status == status)
    return list(
        db.execute(query.order_by(Job.scheduled_start_utc.asc())).scalars().all()
    )
