from datetime import datetime

from .base import ApiModel


class InvoiceLineRead(ApiModel):
    code: str
    label: str
    quantity: int
    unit_price_cents: int
    amount_cents: int


class InvoicePreviewRead(ApiModel):
    job_id: int
    booking_id: int
    billed_hours: float
    crew_size: int
    labor_amount_cents: int
    trip_fee_cents: int
    special_items: list[InvoiceLineRead]
    special_items_total_cents: int
    materials: list[InvoiceLineRead]
    materials_total_cents: int
    base_amount_cents: int
    tip_amount_cents: int
    deposit_amount_cents: int
    reschedule_fees_paid_cents: int
    total_balance_cents: int
    overpaid: bool
    overpaid_amount_cents: int
    flags: list[str]


class SalesCommissionRead(ApiModel):
    id: int
    booking_id: int
    sales_user_id: int
    deposit_amount_cents: int
    commission_amount_cents: int
    is_final: bool
    finalized_at_utc: datetime | None
    created_at_utc: datetime


class SalesCommissionRow(ApiModel):
    id: int
    booking_id: int
    job_id: int | None
    customer_name: str
    move_date: datetime | None
    deposit_amount_cents: int
    commission_amount_cents: int
    is_final: bool
    job_status: str | None
    created_at_utc: datetime


class SalesStatsRead(ApiModel):
    total_commission_cents: int
    pending_commission_cents: int
    completed_moves_count: int
    pending_moves_count: int
