"""API v1 router configuration."""

from fastapi import APIRouter

from ferry_captain.api.v1.trips import router as trips_router

# Create main v1 router
v1_router = APIRouter(prefix="/v1")

# Include sub-routers
v1_router.include_router(trips_router)
