"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from dentbook.api.v1 import booking, health, staff

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Public booking
api_router.include_router(
    booking.router,
    prefix="/booking",
    tags=["booking"],
)

# Staff
api_router.include_router(
    staff.router,
    prefix="/staff",
    tags=["staff"],
)
