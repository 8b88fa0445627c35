from fastapi import APIRouter

from hrflow.api.holidays import holidays_router
from hrflow.api.leave import accruals_router, employee_leave_router, leave_requests_router, leave_types_router
from hrflow.api.request_types import request_types_router
from hrflow.api.submissions import actions_router, submissions_router

api_router = APIRouter()
api_router.include_router(request_types_router)
api_router.include_router(submissions_router)
api_router.include_router(actions_router)
api_router.include_router(leave_types_router)
api_router.include_router(employee_leave_router)
api_router.include_router(leave_requests_router)
api_router.include_router(accruals_router)
api_router.include_router(holidays_router)
