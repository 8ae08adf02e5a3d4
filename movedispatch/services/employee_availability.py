"""Weekly crew schedules and day-off requests.

A day-off request starts ``pending`` and is reviewed once, to ``approved`` or
``denied``. Only a pending request can be withdrawn by its employee, which
deletes it.
"""
from datetime import date, datetime
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..actors import Actor, ActorRole, require_roles
from ..errors import InvalidRequestError, NotFoundError, PermissionDeniedError, StateError
from ..models import (
    DayOffRequest,
    DayOffStatusEnum,
    Employee,
    EmployeeSchedule,
)
from ..models.base import utcnow
from ..schemas import ScheduleDay
from .time_entries import employee_for_actor
from .transactions import transaction

logger = logging.getLogger(__name__)

DAY_OFF_TRANSITIONS: dict[DayOffStatusEnum, frozenset[DayOffStatusEnum]] = {
    DayOffStatusEnum.PENDING: frozenset(
        {DayOffStatusEnum.APPROVED, DayOffStatusEnum.DENIED}
    ),
    DayOffStatusEnum.APPROVED: frozenset(),
    DayOffStatusEnum.DENIED: frozenset(),
}


def _get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError(f"Employee {employee_id} not found.")
    return employee


def get_schedule(db: Session, employee_id: int) -> list[EmployeeSchedule]:
    _get_employee(db, employee_id)
    return list(
        db.execute(
            select(EmployeeSchedule)
            .where(EmployeeSchedule.employee_id == employee_id)
            .order_by(EmployeeSchedule.day_of_week.asc())
        ).scalars()
    )


def get_my_schedule(db: Session, actor: Actor) -> list[EmployeeSchedule]:
    employee = employee_for_actor(db, actor, None)
    return get_schedule(db, employee.id)


def replace_schedule(
    db: Session, employee_id: int, days: list[ScheduleDay], actor: Actor
) -> list[EmployeeSchedule]:
    """Replace an employee's weekly schedule. Days left out have no row."""
    require_roles(actor, ActorRole.ADMIN)
    seen = [day.day_of_week for day in days]
    if len(seen) != len(set(seen)):
        raise InvalidRequestError("Each day of the week may appear only once.")
    with transaction(db):
        for row in get_schedule(db, employee_id):
            db.delete(row)
        db.flush()
        for day in days:
            db.add(
                EmployeeSchedule(
                    employee_id=employee_id,
                    day_of_week=day.day_of_week,
                    is_available=day.is_available,
                    start_time=day.start_time if day.is_available else None,
                    end_time=day.end_time if day.is_available else None,
                )
            )
        db.flush()
        logger.info("Schedule for employee %s replaced by %s", employee_id, actor.label)
    return get_schedule(db, employee_id)


def _lock_request(db: Session, request_id: int) -> DayOffRequest:
    request = db.execute(
        select(DayOffRequest).where(DayOffRequest.id == request_id).with_for_update()
    ).scalar_one_or_none()
    if request is None:
        raise NotFoundError(f"Day-off request {request_id} not found.")
    return request


def request_day_off(
    db: Session,
    day: date,
    actor: Actor,
    reason: str | None = None,
    now: datetime | None = None,
) -> DayOffRequest:
    require_roles(actor, ActorRole.MOVER)
    now = now or utcnow()
    if day < now.date():
        raise InvalidRequestError("Day off cannot be requested for a past date.")
    with transaction(db):
        employee = employee_for_actor(db, actor, None)
        existing = db.execute(
            select(DayOffRequest.id).where(
                DayOffRequest.employee_id == employee.id,
                DayOffRequest.date_utc == day,
                DayOffRequest.status != DayOffStatusEnum.DENIED,
            )
        ).first()
        if existing is not None:
            raise StateError(f"A day-off request for {day.isoformat()} already exists.")
        request = DayOffRequest(
            employee_id=employee.id,
            date_utc=day,
            reason=reason,
            status=DayOffStatusEnum.PENDING,
            created_at_utc=now,
            updated_at_utc=now,
        )
        db.add(request)
        db.flush()
        logger.info("Employee %s requested %s off", employee.id, day.isoformat())
    db.refresh(request)
    return request


def cancel_day_off_request(db: Session, request_id: int, actor: Actor) -> None:
    with transaction(db):
        request = _lock_request(db, request_id)
        employee = db.get(Employee, request.employee_id)
        if not actor.is_admin and (
            employee is None or employee.user_id != actor.user_id
        ):
            raise PermissionDeniedError("You can only withdraw your own requests.")
        if request.status != DayOffStatusEnum.PENDING:
            raise StateError(
                f"Day-off request {request.id} is already {request.status.value}."
            )
        db.delete(request)


def review_day_off_request(
    db: Session,
    request_id: int,
    status: DayOffStatusEnum,
    actor: Actor,
    review_notes: str | None = None,
    now: datetime | None = None,
) -> DayOffRequest:
    require_roles(actor, ActorRole.ADMIN)
    now = now or utcnow()
    with transaction(db):
        request = _lock_request(db, request_id)
        current = DayOffStatusEnum(request.status)
        if status not in DAY_OFF_TRANSITIONS[current]:
            raise StateError(
                f"Day-off request {request.id} cannot move from {current.value} to {status.value}."
            )
        request.status = status
        request.review_notes = review_notes
        request.reviewed_by_user_id = actor.user_id
        request.reviewed_at_utc = now
        request.updated_at_utc = now
        logger.info(
            "Day-off request %s %s by %s", request.id, status.value, actor.label
        )
    db.refresh(request)
    return request


def list_day_off_requests(
    db: Session, status: DayOffStatusEnum | None = None
) -> list[DayOffRequest]:
    query = select(DayOffRequest)
    if status is not None:
        query = query.where(DayOffRequest.status == status)
    return list(
        db.execute(
            query.order_by(DayOffRequest.date_utc.asc(), DayOffRequest.id.asc())
        ).scalars()
    )


def list_my_day_off_requests(db: Session, actor: Actor) -> list[DayOffRequest]:
    employee = employee_for_actor(db, actor, None)
    return list(
        db.execute(
            select(DayOffRequest)
            .where(DayOffRequest.employee_id == employee.id)
            .order_by(DayOffRequest.date_utc.asc(), DayOffRequest.id.asc())
        ).scalars()
    )


def unavailable_employees(
    db: Session, employee_ids: list[int], day: date
) -> dict[int, str]:
    """Employees who should not work on ``day``, with the reason.

    An approved day off wins over the weekly schedule. Employees without a
    schedule row for that weekday are treated as available.
    """
    if not employee_ids:
        return {}
    reasons: dict[int, str] = {}
    schedules = db.execute(
        select(EmployeeSchedule).where(
            EmployeeSchedule.employee_id.in_(employee_ids),
            EmployeeSchedule.day_of_week == day.weekday(),
            EmployeeSchedule.is_available.is_(False),
        )
    ).scalars()
    for schedule in schedules:
        reasons[schedule.employee_id] = "not scheduled"
    approved = db.execute(
        select(DayOffRequest.employee_id).where(
            DayOffRequest.employee_id.in_(employee_ids),
            DayOffRequest.date_utc == day,
            DayOffRequest.status == DayOffStatusEnum.APPROVED,
        )
    ).scalars()
    for employee_id in approved:
        reasons[employee_id] = "approved day off"
    return reasons
