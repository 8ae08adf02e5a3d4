from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..actors import Actor, get_actor, require_roles
from ..db import get_db
from ..errors import InvalidRequestError
from ..models import DayOffRequest, DayOffStatusEnum
from ..schemas import (
    DayOffRequestCreate,
    DayOffRequestRead,
    DayOffReview,
    EmployeeScheduleRead,
    ScheduleUpdate,
)
from ..services import employee_availability as availability_service

router = APIRouter(prefix="/employee-availability")


def _request_read(request: DayOffRequest) -> DayOffRequestRead:
    read = DayOffRequestRead.model_validate(request)
    read.employee_name = request.employee.full_name if request.employee else None
    return read


@router.get(
    "/employees/{employee_id}/schedule", response_model=list[EmployeeScheduleRead]
)
def employee_schedule(
    employee_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> list[EmployeeScheduleRead]:
    require_roles(actor)
    return availability_service.get_schedule(db, employee_id)


@router.put(
    "/employees/{employee_id}/schedule", response_model=list[EmployeeScheduleRead]
)
def replace_employee_schedule(
    employee_id: int,
    payload: ScheduleUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> list[EmployeeScheduleRead]:
    return availability_service.replace_schedule(
        db, employee_id, payload.schedules, actor
    )


@router.get("/day-off-requests", response_model=list[DayOffRequestRead])
def day_off_requests(
    status: str | None = Query(None),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> list[DayOffRequestRead]:
    require_roles(actor)
    status_filter = None
    if status:
        try:
            status_filter = DayOffStatusEnum(status)
        except ValueError:
            raise InvalidRequestError(f"Unknown day-off status: {status}.") from None
    requests = availability_service.list_day_off_requests(db, status_filter)
    return [_request_read(request) for request in requests]


@router.patch("/day-off-requests/{request_id}", response_model=DayOffRequestRead)
def review_day_off_request(
    request_id: int,
    payload: DayOffReview,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> DayOffRequestRead:
    request = availability_service.review_day_off_request(
        db, request_id, payload.status, actor, payload.review_notes
    )
    return _request_read(request)


@router.get("/my/schedule", response_model=list[EmployeeScheduleRead])
def my_schedule(
    actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> list[EmployeeScheduleRead]:
    return availability_service.get_my_schedule(db, actor)


@router.get("/my/day-off-requests", response_model=list[DayOffRequestRead])
def my_day_off_requests(
    actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> list[DayOffRequestRead]:
    requests = availability_service.list_my_day_off_requests(db, actor)
    return [_request_read(request) for request in requests]


@router.post(
    "/my/day-off-requests", response_model=DayOffRequestRead, status_code=201
)
def create_day_off_request(
    payload: DayOffRequestCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> DayOffRequestRead:
    request = availability_service.request_day_off(
        db, payload.date_utc, actor, payload.reason
    )
    return _request_read(request)


@router.delete("/my/day-off-requests/{request_id}")
def cancel_day_off_request(
    request_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> dict:
    availability_service.cancel_day_off_request(db, request_id, actor)
    return {"message": "Day-off request cancelled."}
