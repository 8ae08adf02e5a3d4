"""Company-wide business parameters.

The CompanyConfig row is the only mutable copy. Every operation reads it once
through :func:`get_config_snapshot` and works from the returned frozen
snapshot, so an admin edit landing mid-operation cannot mix old and new
values inside one reservation or invoice.
"""
from dataclasses import dataclass, fields
import logging

from sqlalchemy.orm import Session

from ..errors import InvalidRequestError
from ..models import CompanyConfig

logger = logging.getLogger(__name__)

CONFIG_ROW_ID = 1

RANGE_PAIRS = (
    ("sales_deposit_min_cents", "sales_deposit_max_cents"),
    ("sales_reschedule_fee_min_cents", "sales_reschedule_fee_max_cents"),
    ("sales_trip_fee_min_cents", "sales_trip_fee_max_cents"),
)

NULLABLE_FIELDS = frozenset({"max_trucks_per_booking", "commission_cap_cents"})

NON_NEGATIVE_FIELDS = (
    "customer_deposit_cents",
    "customer_reschedule_fee_cents",
    "sales_deposit_min_cents",
    "sales_deposit_max_cents",
    "sales_reschedule_fee_min_cents",
    "sales_reschedule_fee_max_cents",
    "sales_trip_fee_min_cents",
    "sales_trip_fee_max_cents",
    "default_hourly_rate_cents",
    "minimum_billed_minutes",
)


@dataclass(frozen=True)
class ConfigSnapshot:
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


def snapshot_field_names() -> list[str]:
    return [field.name for field in fields(ConfigSnapshot)]


def _load_row(db: Session) -> CompanyConfig:
    row = db.get(CompanyConfig, CONFIG_ROW_ID)
    if row is None:
        row = CompanyConfig(id=CONFIG_ROW_ID)
        db.add(row)
        db.flush()
        logger.info("Created default company config")
    return row


def get_config_snapshot(db: Session) -> ConfigSnapshot:
    row = _load_row(db)
    return ConfigSnapshot(
        **{name: getattr(row, name) for name in snapshot_field_names()}
    )


def validate_config(values: dict) -> list[str]:
    errors: list[str] = []
    if values["bucket_minutes"] <= 0:
        errors.append("bucket_minutes must be greater than 0.")
    if values["total_trucks"] < 1:
        errors.append("total_trucks must be at least 1.")
    max_trucks = values["max_trucks_per_booking"]
    if max_trucks is not None and max_trucks < 1:
        errors.append("max_trucks_per_booking must be at least 1 when set.")
    if values["hold_minutes"] <= 0:
        errors.append("hold_minutes must be greater than 0.")
    if values["pay_period_days"] <= 0:
        errors.append("pay_period_days must be greater than 0.")
    if not 0 <= values["sales_commission_rate_bps"] <= 10000:
        errors.append("sales_commission_rate_bps must be between 0 and 10000.")
    cap = values["commission_cap_cents"]
    if cap is not None and cap < 0:
        errors.append("commission_cap_cents cannot be negative.")
    for name in NON_NEGATIVE_FIELDS:
        if values[name] < 0:
            errors.append(f"{name} cannot be negative.")
    for low, high in RANGE_PAIRS:
        if values[low] > values[high]:
            errors.append(f"{low} cannot exceed {high}.")
    return errors


def update_config(db: Session, changes: dict) -> ConfigSnapshot:
    """Apply a partial update and return the new snapshot.

    Keys must be snapshot field names. Explicit ``None`` clears the nullable
    fields (``max_trucks_per_booking``, ``commission_cap_cents``).
    """
    unknown = set(changes) - set(snapshot_field_names())
    if unknown:
        raise InvalidRequestError(
            f"Unknown config fields: {', '.join(sorted(unknown))}."
        )

    cleared = sorted(
        name for name, value in changes.items()
        if value is None and name not in NULLABLE_FIELDS
    )
    if cleared:
        raise InvalidRequestError(f"Config fields cannot be empty: {', '.join(cleared)}.")

    row = _load_row(db)
    merged = {name: getattr(row, name) for name in snapshot_field_names()}
    merged.update(changes)
    errors = validate_config(merged)
    if errors:
        db.rollback()
        raise InvalidRequestError(" ".join(errors))

    for name, value in changes.items():
        setattr(row, name, value)
    db.commit()
    logger.info("Company config updated: %s", ", ".join(sorted(changes)))
    return get_config_snapshot(db)
