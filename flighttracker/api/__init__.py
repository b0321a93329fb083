"""API routers for the flight tracker."""

from fastapi import APIRouter

from .aircraft import router as aircraft_router
from .health import router as health_router
from .snapshots import router as snapshots_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(aircraft_router)
api_router.include_router(snapshots_router)

__all__ = ["api_router"]
