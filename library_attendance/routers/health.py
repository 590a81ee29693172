# library_attendance/routers/health.py
"""
System health check endpoint.
Returns status of backend + store sync + overdue monitor.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from library_attendance.context import AppContext, get_context
from library_attendance.services.session_store import ERROR

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(ctx: AppContext = Depends(get_context)):
    """
    Returns:
    - Backend status
    - Database mode (connected / offline) and sync status
    - Whether the overdue monitor task is running
    """
    result = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "backend": "ok",
        "database": "connected" if not ctx.demo_mode else "offline",
        "sync": ctx.store.status,
        "monitor": "running" if ctx.monitor.is_running else "stopped",
    }

    if ctx.store.status == ERROR:
        result["status"] = "degraded"
        result["error"] = ctx.store.last_error
    if not ctx.monitor.is_running:
        result["status"] = "degraded"

    return result
