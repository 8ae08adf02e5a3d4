from datetime import datetime

from pydantic import Field

from .base import ApiModel


class CompanyConfigRead(ApiModel):
    bucket_minutes: int
    total_trucks: int
    max_trucks_per_booking: int | None
    hold_minutes: int
    customer_deposit_cents: int
    customer_reschedule_fee_cents: int
    sales_deposit_min_cents: int
    sales_deposit_max_cents: int
    sales_reschedule_fee_min_cents: int
    sales_reschedule_fee_max_cents: int
    sales_trip_fee_min_cents: int
    sales_trip_fee_max_cents: int
    sales_commission_rate_bps: int
    commission_cap_cents: int | None
    pay_period_days: int
    notifications_enabled: bool
    default_hourly_rate_cents: int
    minimum_billed_minutes: int


class CompanyConfigUpdate(ApiModel):
    bucket_minutes: int | None = None
    total_trucks: int | None = None
    max_trucks_per_booking: int | None = None
    hold_minutes: int | None = None
    customer_deposit_cents: int | None = None
    customer_reschedule_fee_cents: int | None = None
    sales_deposit_min_cents: int | None = None
    sales_deposit_max_cents: int | None = None
    sales_reschedule_fee_min_cents: int | None = None
    sales_reschedule_fee_max_cents: int | None = None
    sales_trip_fee_min_cents: int | None = None
    sales_trip_fee_max_cents: int | None = None
    sales_commission_rate_bps: int | None = None
    commission_cap_cents: int | None = None
    pay_period_days: int | None = None
    notifications_enabled: bool | None = None
    default_hourly_rate_cents: int | None = None
    minimum_billed_minutes: int | None = None


class TruckCreate(ApiModel):
    name: str = Field(min_length=1, max_length=120)
    is_active: bool = True


class TruckUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    is_active: bool | None = None


class TruckRead(ApiModel):
    id: int
    name: str
    is_active: bool


class EmployeeCreate(ApiModel):
    user_id: int | None = None
    employee_number: str | None = None
    full_name: str | None = None
    hourly_rate_cents: int = Field(ge=0)
    is_manager: bool = False


class EmployeeRead(ApiModel):
    id: int
    user_id: int | None
    employee_number: str | None
    full_name: str | None
    hourly_rate_cents: int
    is_manager: bool


class RateUpsert(ApiModel):
    code: str = Field(min_length=1, max_length=50)
    label: str = Field(min_length=1, max_length=120)
    price_cents: int = Field(ge=0)
    is_active: bool = True


class RateRead(ApiModel):
    code: str
    label: str
    price_cents: int
    is_active: bool


class ReaperRunRead(ApiModel):
    expired_booking_ids: list[int]
    skipped_booking_ids: list[int]


class PayrollRow(ApiModel):
    employee_id: int
    employee_number: str | None
    full_name: str | None
    total_hours: float
    hourly_rate_cents: int
    estimated_pay_cents: int


class PayrollSummaryRead(ApiModel):
    period_start_utc: datetime
    period_end_utc: datetime
    rows: list[PayrollRow]
