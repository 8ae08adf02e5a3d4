"""Crew check-in/check-out on jobs.

Crew membership is not required to check in; a dispatcher may be adding
someone on site. Removing a member from the crew closes their open entry
(see ``jobs.assign_crew``).
"""
from datetime import datetime
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..actors import Actor, ActorRole, require_roles
from ..errors import NotFoundError, PermissionDeniedError, StateError
from ..models import Employee, Job, TimeEntry
from ..models.base import utcnow
from .transactions import transaction

logger = logging.getLogger(__name__)


def employee_for_actor(db: Session, actor: Actor, employee_id: int | None) -> Employee:
    if employee_id is None:
        employee = db.execute(
            select(Employee).where(Employee.user_id == actor.user_id)
        ).scalar_one_or_none()
        if employee is None:
            raise NotFoundError("No employee record is linked to this user.")
        return employee
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError(f"Employee {employee_id} not found.")
    if not actor.is_admin and employee.user_id != actor.user_id:
        raise PermissionDeniedError("You can only record your own time.")
    return employee


def check_in(
    db: Session,
    job_id: int,
    actor: Actor,
    employee_id: int | None = None,
    now: datetime | None = None,
) -> TimeEntry:
    require_roles(actor, ActorRole.MOVER)
    now = now or utcnow()
    with transaction(db):
        if db.get(Job, job_id) is None:
            raise NotFoundError(f"Job {job_id} not found.")
        employee = employee_for_actor(db, actor, employee_id)
        open_entry = db.execute(
            select(TimeEntry).where(
                TimeEntry.job_id == job_id,
                TimeEntry.employee_id == employee.id,
                TimeEntry.check_out_utc.is_(None),
            )
        ).scalar_one_or_none()
        if open_entry is not None:
            raise StateError(
                f"Employee {employee.id} is already checked in to job {job_id}."
            )
        entry = TimeEntry(job_id=job_id, employee_id=employee.id, check_in_utc=now)
        db.add(entry)
        db.flush()
        logger.info("Employee %s checked in to job %s", employee.id, job_id)
    db.refresh(entry)
    return entry


def check_out(
    db: Session,
    time_entry_id: int,
    actor: Actor,
    now: datetime | None = None,
) -> TimeEntry:
    require_roles(actor, ActorRole.MOVER)
    now = now or utcnow()
    with transaction(db):
        entry = db.get(TimeEntry, time_entry_id)
        if entry is None:
            raise NotFoundError(f"Time entry {time_entry_id} not found.")
        employee_for_actor(db, actor, entry.employee_id)
        if entry.check_out_utc is not None:
            raise StateError(f"Time entry {entry.id} is already checked out.")
        entry.check_out_utc = max(now, entry.check_in_utc)
        logger.info(
            "Employee %s checked out of job %s", entry.employee_id, entry.job_id
        )
    db.refresh(entry)
    return entry


def list_time_entries(
    db: Session, actor: Actor, job_id: int | None = None
) -> list[TimeEntry]:
    query = select(TimeEntry)
    if not actor.is_admin:
        employee = employee_for_actor(db, actor, None)
        query = query.where(TimeEntry.employee_id == employee.id)
    if job_id is not None:
        query = query.where(TimeEntry.job_id == job_id)
    return list(
        db.execute(query.order_by(TimeEntry.check_in_utc.desc())).scalars().all()
    )
