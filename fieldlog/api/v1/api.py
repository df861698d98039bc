# fieldlog/api/v1/api.py
from fastapi import APIRouter
from fieldlog.api.v1.endpoints import admin, dashboard, activity, users, notifications

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(activity.router, tags=["Timesheet"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
