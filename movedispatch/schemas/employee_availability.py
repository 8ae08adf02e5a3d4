from datetime import date, datetime, time

from pydantic import Field, field_validator, model_validator

from ..models import DayOffStatusEnum
from .base import ApiModel


class ScheduleDay(ApiModel):
    day_of_week: int = Field(ge=0, le=6)
    is_available: bool = True
    start_time: time | None = None
    end_time: time | None = None

    @model_validator(mode="after")
    def check_hours(self) -> "ScheduleDay":
        if (
            self.start_time is not None
            and self.end_time is not None
            and self.end_time <= self.start_time
        ):
            raise ValueError("endTime must be after startTime")
        return self


class ScheduleUpdate(ApiModel):
    schedules: list[ScheduleDay]


class EmployeeScheduleRead(ScheduleDay):
    id: int
    employee_id: int


class DayOffRequestCreate(ApiModel):
    date_utc: date
    reason: str | None = Field(default=None, max_length=500)


class DayOffReview(ApiModel):
    status: DayOffStatusEnum
    review_notes: str | None = Field(default=None, max_length=500)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v == DayOffStatusEnum.PENDING:
            raise ValueError("status must be approved or denied")
        return v


class DayOffRequestRead(ApiModel):
    id: int
    employee_id: int
    date_utc: date
    reason: str | None
    status: DayOffStatusEnum
    reviewed_by_user_id: int | None
    reviewed_at_utc: datetime | None
    review_notes: str | None
    created_at_utc: datetime
    updated_at_utc: datetime
    employee_name: str | None = None
