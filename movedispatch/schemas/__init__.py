from .admin import (
    CompanyConfigRead,
    CompanyConfigUpdate,
    EmployeeCreate,
    EmployeeRead,
    PayrollRow,
    PayrollSummaryRead,
    RateRead,
    RateUpsert,
    ReaperRunRead,
    TruckCreate,
    TruckRead,
    TruckUpdate,
)
from .billing import (
    InvoiceLineRead,
    InvoicePreviewRead,
    SalesCommissionRead,
    SalesCommissionRow,
    SalesStatsRead,
)
from .booking import (
    AvailabilityDayRead,
    BookingCreate,
    BookingHold,
    BookingRead,
    BookingReschedule,
    BucketRead,
)
from .employee_availability import (
    DayOffRequestCreate,
    DayOffRequestRead,
    DayOffReview,
    EmployeeScheduleRead,
    ScheduleDay,
    ScheduleUpdate,
)
from .job import (
    CrewAssignment,
    EmployeeInfo,
    FinalPayment,
    JobCreate,
    JobRead,
    JobStatusUpdate,
    JobUpdate,
    MaterialQuantity,
    MaterialsUpdate,
    TimeEntryCheckIn,
    TimeEntryCheckOut,
    TimeEntryRead,
    TruckAssignment,
    TruckInfo,
)

__all__ = [
    "AvailabilityDayRead",
    "BookingCreate",
    "BookingHold",
    "BookingRead",
    "BookingReschedule",
    "BucketRead",
    "CompanyConfigRead",
    "CompanyConfigUpdate",
    "CrewAssignment",
    "DayOffRequestCreate",
    "DayOffRequestRead",
    "DayOffReview",
    "EmployeeCreate",
    "EmployeeInfo",
    "EmployeeRead",
    "EmployeeScheduleRead",
    "FinalPayment",
    "InvoiceLineRead",
    "InvoicePreviewRead",
    "JobCreate",
    "JobRead",
    "JobStatusUpdate",
    "JobUpdate",
    "MaterialQuantity",
    "MaterialsUpdate",
    "PayrollRow",
    "PayrollSummaryRead",
    "RateRead",
    "RateUpsert",
    "ReaperRunRead",
    "SalesCommissionRead",
    "SalesCommissionRow",
    "SalesStatsRead",
    "ScheduleDay",
    "ScheduleUpdate",
    "TimeEntryCheckIn",
    "TimeEntryCheckOut",
    "TimeEntryRead",
    "TruckAssignment",
    "TruckCreate",
    "TruckInfo",
    "TruckRead",
    "TruckUpdate",
]
