from fastapi import APIRouter

from .admin import router as admin_router
from .availability import router as availability_router
from .bookings import router as bookings_router
from .employee_availability import router as employee_availability_router
from .jobs import router as jobs_router
from .sales import router as sales_router
from .time_entries import router as time_entries_router

api_router = APIRouter()
api_router.include_router(availability_router, tags=["availability"])
api_router.include_router(bookings_router, tags=["bookings"])
api_router.include_router(jobs_router, tags=["jobs"])
api_router.include_router(time_entries_router, tags=["time-entries"])
api_router.include_router(
    employee_availability_router, tags=["employee-availability"]
)
api_router.include_router(sales_router, tags=["sales"])
api_router.include_router(admin_router, tags=["admin"])
