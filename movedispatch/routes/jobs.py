from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..actors import Actor, get_actor, require_webhook_secret
from ..db import get_db
from ..models import Job
from ..schemas import (
    CrewAssignment,
    EmployeeInfo,
    FinalPayment,
    InvoicePreviewRead,
    JobCreate,
    JobRead,
    JobStatusUpdate,
    JobUpdate,
    MaterialsUpdate,
    TruckAssignment,
    TruckInfo,
)
from ..services import billing as billing_service
from ..services import jobs as jobs_service

router = APIRouter(prefix="/jobs")


def _job_read(job: Job) -> JobRead:
    return JobRead(
        id=job.id,
        booking_id=job.booking_id,
        truck_id=job.truck_id,
        status=job.status.value,
        scheduled_start_utc=job.scheduled_start_utc,
        actual_start_utc=job.actual_start_utc,
        actual_end_utc=job.actual_end_utc,
        notes=job.notes,
        issue_description=job.issue_description,
        tip_amount_cents=job.tip_amount_cents,
        assigned_crew=[EmployeeInfo.model_validate(member) for member in job.crew],
        materials_used={line.material_code: line.quantity for line in job.materials},
        truck=TruckInfo.model_validate(job.truck) if job.truck else None,
    )


@router.post("", response_model=JobRead, status_code=201)
def materialize_job(
    payload: JobCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> JobRead:
    return _job_read(jobs_service.materialize_job(db, payload, actor))


@router.get("", response_model=list[JobRead])
def list_jobs(
    date_from_utc: datetime | None = Query(None, alias="dateFromUtc"),
    date_to_utc: datetime | None = Query(None, alias="dateToUtc"),
    employee_id: int | None = Query(None, alias="employeeId"),
    status: str | None = Query(None),
    db: Session = Depends(get_db),
) -> list[JobRead]:
    status_filter = jobs_service.parse_job_status(status) if status else None
    jobs = jobs_service.list_jobs(
        db, date_from_utc, date_to_utc, employee_id, status_filter
    )
    return [_job_read(job) for job in jobs]


@router.get("/{job_id}", response_model=JobRead)
def get_job(job_id: int, db: Session = Depends(get_db)) -> JobRead:
    return _job_read(jobs_service.get_job(db, job_id))


@router.patch("/{job_id}", response_model=JobRead)
def update_job(
    job_id: int,
    payload: JobUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> JobRead:
    return _job_read(jobs_service.update_job_details(db, job_id, payload, actor))


@router.post("/{job_id}/status", response_model=JobRead)
def transition_job_status(
    job_id: int,
    payload: JobStatusUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> JobRead:
    target = jobs_service.parse_job_status(payload.new_status)
    job = jobs_service.transition_job_status(db, job_id, target, actor, payload.note)
    return _job_read(job)


@router.post("/{job_id}/status/override", response_model=JobRead)
def override_job_status(
    job_id: int,
    payload: JobStatusUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> JobRead:
    target = jobs_service.parse_job_status(payload.new_status)
    job = jobs_service.override_job_status(db, job_id, target, actor, payload.note)
    return _job_read(job)


@router.post("/{job_id}/crew", response_model=JobRead)
def assign_crew(
    job_id: int,
    payload: CrewAssignment,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> JobRead:
    return _job_read(jobs_service.assign_crew(db, job_id, payload.employee_ids, actor))


@router.post("/{job_id}/truck", response_model=JobRead)
def assign_truck(
    job_id: int,
    payload: TruckAssignment,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> JobRead:
    return _job_read(jobs_service.assign_truck(db, job_id, payload.truck_id, actor))


@router.post("/{job_id}/materials", response_model=JobRead)
def record_materials(
    job_id: int,
    payload: MaterialsUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> JobRead:
    job = jobs_service.record_materials(db, job_id, payload.materials, actor)
    return _job_read(job)


@router.post(
    "/{job_id}/confirm-final-payment",
    response_model=JobRead,
    dependencies=[Depends(require_webhook_secret)],
)
def confirm_final_payment(
    job_id: int,
    payload: FinalPayment,
    db: Session = Depends(get_db),
) -> JobRead:
    job = jobs_service.confirm_final_payment(db, job_id, payload.tip_amount_cents)
    return _job_read(job)


@router.get("/{job_id}/invoice-preview", response_model=InvoicePreviewRead)
def invoice_preview(
    job_id: int,
    tip_amount_cents: int = Query(0, alias="tipAmountCents", ge=0),
    db: Session = Depends(get_db),
) -> InvoicePreviewRead:
    preview = billing_service.compute_invoice_preview(db, job_id, tip_amount_cents)
    return InvoicePreviewRead.model_validate(preview)
