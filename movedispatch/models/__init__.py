from .base import Base
from .booking import Booking, BookingStatusEnum
from .company_config import CompanyConfig
from .employee import Employee
from .employee_availability import DayOffRequest, DayOffStatusEnum, EmployeeSchedule
from .fleet_lock import FleetLock
from .job import Job, JobMaterial, JobStatusEnum, JobStatusOverride, job_crew
from .rates import MaterialRate, SpecialItemRate
from .reservation import Reservation
from .sales_commission import SalesCommission
from .time_entry import TimeEntry
from .truck import Truck

__all__ = [
    "Base",
    "Booking",
    "BookingStatusEnum",
    "CompanyConfig",
    "DayOffRequest",
    "DayOffStatusEnum",
    "Employee",
    "EmployeeSchedule",
    "FleetLock",
    "Job",
    "JobMaterial",
    "JobStatusEnum",
    "JobStatusOverride",
    "job_crew",
    "MaterialRate",
    "SpecialItemRate",
    "Reservation",
    "SalesCommission",
    "TimeEntry",
    "Truck",
]
