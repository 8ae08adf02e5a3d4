from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from movedispatch.actors import Actor
from movedispatch.config import settings
from movedispatch.db import create_db_engine, get_db
from movedispatch.main import app
from movedispatch.models import Base, Booking, BookingStatusEnum, Employee, Job, JobStatusEnum
from movedispatch.services import bookings as bookings_service
from movedispatch.services.config_store import update_config

from .factories import CUSTOMER, NOW, WEBHOOK_SECRET, at, booking_payload


@pytest.fixture()
def engine(tmp_path):
    db_path = tmp_path / "test.db"
    engine = create_db_engine(f"sqlite+pysqlite:///{db_path}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def SessionLocal(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(SessionLocal):
    # Every transaction takes the SQLite write lock, so tests that also use
    # the client must end this session's transaction before each request.
    session = SessionLocal(expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(SessionLocal, monkeypatch):
    monkeypatch.setattr(settings, "payment_webhook_secret", WEBHOOK_SECRET)

    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def configure(db_session):
    def _configure(**changes):
        snapshot = update_config(db_session, changes)
        db_session.commit()
        return snapshot

    return _configure


@pytest.fixture()
def confirmed_booking(db_session):
    def _confirmed(start: datetime, end: datetime, trucks: int = 1, actor: Actor = CUSTOMER, **extra) -> Booking:
        booking = bookings_service.create_booking(
            db_session, booking_payload(start, end, trucks, **extra), actor, now=NOW
        )
        booking = bookings_service.confirm_payment(db_session, booking.id, now=NOW)
        db_session.commit()
        return booking

    return _confirmed


@pytest.fixture()
def make_employee(db_session):
    def _make(hourly_rate_cents: int = 5000, user_id: int | None = None, name: str = "Crew Member") -> Employee:
        employee = Employee(
            user_id=user_id, full_name=name, hourly_rate_cents=hourly_rate_cents
        )
        db_session.add(employee)
        db_session.commit()
        return employee

    return _make


@pytest.fixture()
def make_job(db_session):
    """Insert a booking and job directly, without going through capacity."""

    def _make(
        status: JobStatusEnum = JobStatusEnum.SCHEDULED,
        deposit_amount_cents: int = 10000,
        trip_fee_cents: int | None = None,
        sales_user_id: int | None = None,
        special_items: list[str] | None = None,
        crew: list[Employee] | None = None,
        actual_start_utc: datetime | None = None,
        actual_end_utc: datetime | None = None,
    ) -> Job:
        booking = Booking(
            status=BookingStatusEnum.CONFIRMED,
            sales_user_id=sales_user_id,
            customer_name="Dana Moss",
            customer_email="dana@example.com",
            customer_phone="555-0100",
            move_from_address="12 Elm St",
            move_to_address="98 Oak Ave",
            start_utc=at(9),
            end_utc=at(12),
            requested_trucks=1,
            deposit_amount_cents=deposit_amount_cents,
            trip_fee_cents=trip_fee_cents,
            special_items=special_items or [],
        )
        db_session.add(booking)
        db_session.flush()
        job = Job(
            booking_id=booking.id,
            status=status,
            scheduled_start_utc=booking.start_utc,
            actual_start_utc=actual_start_utc,
            actual_end_utc=actual_end_utc,
        )
        job.crew = list(crew or [])
        db_session.add(job)
        db_session.commit()
        return job

    return _make
