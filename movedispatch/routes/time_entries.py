from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..actors import Actor, get_actor, require_roles
from ..db import get_db
from ..schemas import PayrollSummaryRead, TimeEntryCheckIn, TimeEntryCheckOut, TimeEntryRead
from ..services import payroll as payroll_service
from ..services import time_entries as time_entries_service

router = APIRouter()


@router.post("/time-entries/check-in", response_model=TimeEntryRead)
def check_in(
    payload: TimeEntryCheckIn,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> TimeEntryRead:
    return time_entries_service.check_in(db, payload.job_id, actor, payload.employee_id)


@router.post("/time-entries/check-out", response_model=TimeEntryRead)
def check_out(
    payload: TimeEntryCheckOut,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> TimeEntryRead:
    return time_entries_service.check_out(db, payload.time_entry_id, actor)


@router.get("/time-entries", response_model=list[TimeEntryRead])
def list_time_entries(
    job_id: int | None = Query(None, alias="jobId"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> list[TimeEntryRead]:
    return time_entries_service.list_time_entries(db, actor, job_id)


@router.get("/payroll/summary", response_model=PayrollSummaryRead)
def payroll_summary(
    period_start_utc: datetime = Query(..., alias="periodStartUtc"),
    period_end_utc: datetime | None = Query(None, alias="periodEndUtc"),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> PayrollSummaryRead:
    require_roles(actor)
    return PayrollSummaryRead(
        **payroll_service.payroll_summary(db, period_start_utc, period_end_utc)
    )
