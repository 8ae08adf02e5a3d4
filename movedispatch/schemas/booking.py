from datetime import datetime

from pydantic import EmailStr, Field

from .base import ApiModel


class BookingCreate(ApiModel):
    start_utc: datetime
    end_utc: datetime
    requested_trucks: int = Field(default=1, ge=1)
    customer_name: str = Field(min_length=1, max_length=255)
    customer_email: EmailStr
    customer_phone: str = Field(min_length=1, max_length=50)
    move_from_address: str = Field(min_length=1, max_length=500)
    move_to_address: str = Field(min_length=1, max_length=500)
    notes: str | None = None
    special_items: list[str] = Field(default_factory=list)
    deposit_amount_cents: int | None = Field(default=None, ge=0)
    trip_fee_cents: int | None = Field(default=None, ge=0)
    sales_user_id: int | None = None


class BookingReschedule(ApiModel):
    new_start_utc: datetime
    new_end_utc: datetime
    new_requested_trucks: int = Field(default=1, ge=1)
    reschedule_fee_cents: int | None = Field(default=None, ge=0)


class BookingHold(ApiModel):
    booking_id: int
    hold_expires_at_utc: datetime | None


class BookingRead(ApiModel):
    id: int
    customer_user_id: int | None
    sales_user_id: int | None
    linked_to_booking_id: int | None
    status: str
    customer_name: str
    customer_email: str
    customer_phone: str
    move_from_address: str
    move_to_address: str
    notes: str | None
    start_utc: datetime
    end_utc: datetime
    requested_trucks: int
    deposit_amount_cents: int
    reschedule_fee_amount_cents: int | None
    trip_fee_cents: int | None
    special_items: list[str]
    hold_expires_at_utc: datetime | None
    created_at_utc: datetime
    updated_at_utc: datetime


class BucketRead(ApiModel):
    bucket_start: datetime
    remaining_capacity: int


class AvailabilityDayRead(ApiModel):
    date: str
    buckets: list[BucketRead]
