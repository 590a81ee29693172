# library_attendance/routers/settings.py
"""Policy settings — capacity, auto-checkout and overdue alert configuration."""

from fastapi import APIRouter, Depends, HTTPException

from library_attendance.context import AppContext, get_context
from library_attendance.schemas.settings import AppSettings
from library_attendance.services.backends import RemoteStoreError
from library_attendance.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/settings", response_model=AppSettings)
def get_settings(ctx: AppContext = Depends(get_context)):
    return ctx.store.settings


@router.put("/settings", response_model=AppSettings, summary="Replace the policy settings")
async def save_settings(body: AppSettings, ctx: AppContext = Depends(get_context)):
    """Takes effect on the next monitor tick."""
    try:
        await ctx.backend.save_settings(body)
    except RemoteStoreError as e:
        ctx.store.set_error(str(e))
        raise HTTPException(status_code=503, detail=str(e))
    logger.info(
        f"Settings updated: capacity={body.daily_capacity} "
        f"auto_checkout={body.auto_checkout_enabled}/{body.auto_checkout_hours}h "
        f"alerts={body.notifications.enabled}/{body.notifications.threshold_minutes}min"
    )
    return body
