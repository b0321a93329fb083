"""Health check endpoint."""

from fastapi import APIRouter, Request
from flighttracker.config import settings

router = APIRouter()


def _feed_status(request: Request) -> str:
    task = getattr(request.app.state, "feed_task", None)
    if task is None:
        return "disabled"
    return "stopped" if task.done() else "running"


@router.get("/healthz", summary="Health check")
def health_check(request: Request) -> dict[str, object]:
    """Report service status, feed state and how many aircraft are tracked."""
    store = getattr(request.app.state, "store", None)
    return {
        "status": "ok",
        "env": settings.environment,
        "feed": _feed_status(request),
        "tracked_aircraft": len(store) if store is not None else 0,
    }
