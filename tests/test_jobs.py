from datetime import timedelta

import pytest
from sqlalchemy import select

from movedispatch.errors import InvalidRequestError, PermissionDeniedError, StateError
from movedispatch.models import (
    Job,
    JobStatusEnum,
    JobStatusOverride,
    MaterialRate,
    SalesCommission,
    TimeEntry,
    Truck,
)
from movedispatch.schemas import JobCreate, JobUpdate, MaterialQuantity
from movedispatch.services import bookings as bookings_service
from movedispatch.services import jobs as jobs_service
from movedispatch.services import time_entries as time_entries_service
from movedispatch.services.billing import compute_invoice_preview, finalize_commission

from .factories import ADMIN, CUSTOMER, MOVER, NOW, SALES, at, booking_payload

FORWARD_PATH = [
    JobStatusEnum.EN_ROUTE,
    JobStatusEnum.STARTED,
    JobStatusEnum.FINISHED_LOADING,
    JobStatusEnum.START_UNLOADING,
    JobStatusEnum.COMPLETED,
]


def test_materialize_is_idempotent(db_session, confirmed_booking):
    booking = confirmed_booking(at(10), at(12))
    first = jobs_service.materialize_job(db_session, JobCreate(booking_id=booking.id), SALES)
    second = jobs_service.materialize_job(db_session, JobCreate(booking_id=booking.id), SALES)

    assert first.id == second.id
    assert first.status == JobStatusEnum.SCHEDULED
    assert first.scheduled_start_utc == at(10)


def test_materialize_requires_confirmed_booking(db_session):
    booking = bookings_service.create_booking(
        db_session, booking_payload(at(10), at(12)), CUSTOMER, now=NOW
    )
    with pytest.raises(StateError):
        jobs_service.materialize_job(db_session, JobCreate(booking_id=booking.id), SALES)


def test_forward_path_stamps_actual_times(db_session, make_job):
    job = make_job()
    moments = {}
    for index, status in enumerate(FORWARD_PATH):
        moments[status] = NOW + timedelta(hours=index)
        job = jobs_service.transition_job_status(
            db_session, job.id, status, MOVER, now=moments[status]
        )

    assert job.status == JobStatusEnum.COMPLETED
    assert job.actual_start_utc == moments[JobStatusEnum.STARTED]
    assert job.actual_end_utc == moments[JobStatusEnum.COMPLETED]


def test_non_admin_cannot_skip_or_go_back(db_session, make_job):
    job = make_job(status=JobStatusEnum.STARTED)

    with pytest.raises(StateError):
        jobs_service.transition_job_status(
            db_session, job.id, JobStatusEnum.COMPLETED, MOVER, now=NOW
        )
    with pytest.raises(StateError):
        jobs_service.transition_job_status(
            db_session, job.id, JobStatusEnum.EN_ROUTE, MOVER, now=NOW
        )
    db_session.expire_all()
    assert db_session.get(Job, job.id).status == JobStatusEnum.STARTED


def test_customer_cannot_move_jobs(db_session, make_job):
    job = make_job()
    with pytest.raises(PermissionDeniedError):
        jobs_service.transition_job_status(
            db_session, job.id, JobStatusEnum.EN_ROUTE, CUSTOMER, now=NOW
        )


def test_issue_reported_resumes_previous_status(db_session, make_job):
    job = make_job(status=JobStatusEnum.FINISHED_LOADING)

    job = jobs_service.transition_job_status(
        db_session, job.id, JobStatusEnum.ISSUE_REPORTED, MOVER, note="flat tire", now=NOW
    )
    assert job.status_before_issue == JobStatusEnum.FINISHED_LOADING

    with pytest.raises(StateError):
        jobs_service.transition_job_status(
            db_session, job.id, JobStatusEnum.START_UNLOADING, MOVER, now=NOW
        )
    job = jobs_service.transition_job_status(
        db_session, job.id, JobStatusEnum.FINISHED_LOADING, MOVER, now=NOW
    )
    assert job.status == JobStatusEnum.FINISHED_LOADING
    assert job.status_before_issue is None


def test_admin_override_is_audited_and_finalizes_commission(db_session, make_job):
    job = make_job(
        status=JobStatusEnum.EN_ROUTE, deposit_amount_cents=20000, sales_user_id=77
    )
    finalize_commission(db_session, job.booking_id, now=NOW)

    job = jobs_service.transition_job_status(
        db_session, job.id, JobStatusEnum.COMPLETED, ADMIN, note="paid in cash", now=NOW
    )

    assert job.status == JobStatusEnum.COMPLETED
    override = db_session.execute(select(JobStatusOverride)).scalar_one()
    assert (override.from_status, override.to_status) == ("enRoute", "completed")
    assert override.overridden_by == "admin:1"
    commission = db_session.execute(select(SalesCommission)).scalar_one()
    assert commission.is_final is True


def test_final_payment_webhook_records_tip(db_session, make_job):
    job = make_job(status=JobStatusEnum.PAYMENT_PENDING)

    job = jobs_service.confirm_final_payment(db_session, job.id, tip_amount_cents=1500, now=NOW)
    assert job.status == JobStatusEnum.COMPLETED
    assert job.tip_amount_cents == 1500
    again = jobs_service.confirm_final_payment(db_session, job.id, tip_amount_cents=0, now=NOW)
    assert again.tip_amount_cents == 1500


def test_crew_replacement_closes_removed_members_entries(db_session, make_job, make_employee):
    stays = make_employee(user_id=301, name="Stays")
    leaves = make_employee(user_id=302, name="Leaves")
    job = make_job(crew=[stays, leaves])
    entry = time_entries_service.check_in(db_session, job.id, ADMIN, leaves.id, now=NOW)

    later = NOW + timedelta(hours=2)
    job = jobs_service.assign_crew(db_session, job.id, [stays.id], SALES, now=later)

    assert [member.id for member in job.crew] == [stays.id]
    db_session.expire_all()
    assert db_session.get(TimeEntry, entry.id).check_out_utc == later


def test_inactive_truck_cannot_be_assigned(db_session, make_job):
    job = make_job()
    truck = Truck(name="Old Blue", is_active=False)
    db_session.add(truck)
    db_session.commit()

    with pytest.raises(InvalidRequestError):
        jobs_service.assign_truck(db_session, job.id, truck.id, SALES)


def test_only_admin_edits_actual_times(db_session, make_job):
    job = make_job()
    with pytest.raises(InvalidRequestError):
        jobs_service.update_job_details(
            db_session, job.id, JobUpdate(actual_start_utc=at(9)), MOVER
        )
    job = jobs_service.update_job_details(
        db_session,
        job.id,
        JobUpdate(actual_start_utc=at(9), actual_end_utc=at(12), notes="stairs"),
        ADMIN,
    )
    assert job.actual_end_utc - job.actual_start_utc == timedelta(hours=3)
    assert job.notes == "stairs"


def test_record_materials_sets_and_clears_lines(db_session, make_job):
    db_session.add(MaterialRate(code="largeBox", label="Large Box", unit_price_cents=600))
    db_session.commit()
    job = make_job()

    job = jobs_service.record_materials(
        db_session, job.id, [MaterialQuantity(material_code="largeBox", quantity=4)], MOVER
    )
    assert {line.material_code: line.quantity for line in job.materials} == {"largeBox": 4}

    job = jobs_service.record_materials(
        db_session, job.id, [MaterialQuantity(material_code="largeBox", quantity=0)], MOVER
    )
    assert job.materials == []

    with pytest.raises(InvalidRequestError):
        jobs_service.record_materials(
            db_session, job.id, [MaterialQuantity(material_code="crate", quantity=1)], MOVER
        )


def test_forced_completion_bills_like_natural_completion(db_session, make_job, make_employee):
    crew = [make_employee(5000)]
    natural = make_job(status=JobStatusEnum.START_UNLOADING, crew=crew, actual_start_utc=at(9))
    forced = make_job(status=JobStatusEnum.START_UNLOADING, crew=crew, actual_start_utc=at(9))

    jobs_service.transition_job_status(
        db_session, natural.id, JobStatusEnum.COMPLETED, MOVER, now=at(12)
    )
    forced = jobs_service.override_job_status(
        db_session, forced.id, JobStatusEnum.COMPLETED, ADMIN, note="closed by office", now=at(12)
    )

    assert forced.actual_end_utc == at(12)
    natural_preview = compute_invoice_preview(db_session, natural.id)
    forced_preview = compute_invoice_preview(db_session, forced.id)
    assert forced_preview.billed_hours == natural_preview.billed_hours == 3.0
    assert forced_preview.labor_amount_cents == natural_preview.labor_amount_cents
    assert forced_preview.total_balance_cents == natural_preview.total_balance_cents
    assert forced_preview.flags == natural_preview.flags
