from datetime import datetime

from pydantic import Field

from .base import ApiModel


class JobCreate(ApiModel):
    booking_id: int
    notes: str | None = None
    employee_ids: list[int] = Field(default_factory=list)


class JobStatusUpdate(ApiModel):
    new_status: str
    note: str | None = Field(default=None, max_length=255)


class CrewAssignment(ApiModel):
    employee_ids: list[int]


class TruckAssignment(ApiModel):
    truck_id: int | None


class JobUpdate(ApiModel):
    notes: str | None = None
    issue_description: str | None = None
    actual_start_utc: datetime | None = None
    actual_end_utc: datetime | None = None


class MaterialQuantity(ApiModel):
    material_code: str = Field(min_length=1, max_length=50)
    quantity: int = Field(ge=0)


class MaterialsUpdate(ApiModel):
    materials: list[MaterialQuantity]


class FinalPayment(ApiModel):
    tip_amount_cents: int = Field(default=0, ge=0)


class EmployeeInfo(ApiModel):
    id: int
    user_id: int | None
    employee_number: str | None
    full_name: str | None
    hourly_rate_cents: int
    is_manager: bool


class TruckInfo(ApiModel):
    id: int
    name: str
    is_active: bool


class JobRead(ApiModel):
    id: int
    booking_id: int
    truck_id: int | None
    status: str
    scheduled_start_utc: datetime
    actual_start_utc: datetime | None
    actual_end_utc: datetime | None
    notes: str | None
    issue_description: str | None
    tip_amount_cents: int | None
    assigned_crew: list[EmployeeInfo] = Field(default_factory=list)
    materials_used: dict[str, int] = Field(default_factory=dict)
    truck: TruckInfo | None = None


class TimeEntryCheckIn(ApiModel):
    job_id: int
    employee_id: int | None = None


class TimeEntryCheckOut(ApiModel):
    time_entry_id: int


class TimeEntryRead(ApiModel):
    id: int
    job_id: int
    employee_id: int
    check_in_utc: datetime
    check_out_utc: datetime | None
