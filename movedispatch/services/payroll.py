from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import InvalidRequestError
from ..models import Employee, TimeEntry
from ..models.base import as_utc_naive
from .config_store import get_config_snapshot

SECONDS_PER_HOUR = Decimal("3600")


def payroll_summary(
    db: Session,
    period_start: datetime,
    period_end: datetime | None = None,
) -> dict:
    """Hours and estimated pay per employee for closed time entries.

    An entry belongs to the period its check-in falls in. Open entries are
    left out until they are checked out.
    """
    period_start = as_utc_naive(period_start)
    if period_end is None:
        days = get_config_snapshot(db).pay_period_days
        period_end = period_start + timedelta(days=days)
    period_end = as_utc_naive(period_end)
    if period_end <= period_start:
        raise InvalidRequestError("Period end must be after period start.")

    rows = db.execute(
        select(TimeEntry, Employee)
        .join(Employee, TimeEntry.employee_id == Employee.id)
        .where(
            TimeEntry.check_in_utc >= period_start,
            TimeEntry.check_in_utc < period_end,
            TimeEntry.check_out_utc.is_not(None),
        )
        .order_by(Employee.id)
    ).all()

    seconds_by_employee: dict[int, Decimal] = {}
    employees: dict[int, Employee] = {}
    for entry, employee in rows:
        employees[employee.id] = employee
        worked = Decimal((entry.check_out_utc - entry.check_in_utc).total_seconds())
        seconds_by_employee[employee.id] = (
            seconds_by_employee.get(employee.id, Decimal("0")) + worked
        )

    summary = []
    for employee_id, seconds in seconds_by_employee.items():
        employee = employees[employee_id]
        hours = seconds / SECONDS_PER_HOUR
        pay = (hours * employee.hourly_rate_cents).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        summary.append(
            {
                "employee_id": employee.id,
                "employee_number": employee.employee_number,
                "full_name": employee.full_name,
                "total_hours": float(hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
                "hourly_rate_cents": employee.hourly_rate_cents,
                "estimated_pay_cents": int(pay),
            }
        )
    return {
        "period_start_utc": period_start,
        "period_end_utc": period_end,
        "rows": summary,
    }
