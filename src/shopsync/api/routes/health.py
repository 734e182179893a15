"""
Health check endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response, status

from shopsync import __version__
from shopsync.api.dependencies import get_context
from shopsync.bootstrap import AppContext

router = APIRouter()


@router.get("", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, Any]:
    """Liveness: the process is up."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "shopsync",
        "version": __version__,
    }


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(response: Response, context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    """Readiness: the database answers and the scheduler state is known."""
    database_ok = await context.database.ping()

    if not database_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if database_ok else "unhealthy",
        "checks": {
            "database": {"status": "healthy" if database_ok else "unhealthy"},
            "scheduler": {
                "status": "running" if context.scheduler.running else "stopped",
                "sync_state": context.orchestrator.state.value,
            },
        },
    }
