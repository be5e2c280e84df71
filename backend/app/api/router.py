from fastapi import APIRouter

from app.api.balances import balances_router
from app.api.employees import employees_router, employments_router
from app.api.funding import allocations_router, grants_router
from app.api.holidays import holidays_router
from app.api.leave_requests import leave_requests_router
from app.api.leave_types import leave_types_router

api_router = APIRouter()
api_router.include_router(leave_types_router)
api_router.include_router(balances_router)
api_router.include_router(leave_requests_router)
api_router.include_router(holidays_router)
api_router.include_router(employees_router)
api_router.include_router(employments_router)
api_router.include_router(allocations_router)
api_router.include_router(grants_router)
