# library_attendance/routers/sync.py
"""Store sync status + manual resync (the only way out of the error state)."""

from fastapi import APIRouter, Depends

from library_attendance.context import AppContext, get_context
from library_attendance.schemas.sync import SyncStatusOut

router = APIRouter()


def _status(ctx: AppContext) -> SyncStatusOut:
    store = ctx.store
    return SyncStatusOut(
        status=store.status,
        connected=not ctx.demo_mode,
        last_error=store.last_error,
        last_sync=store.last_sync,
        active_sessions=len(store.active_sessions),
        patrons=len(store.patrons),
    )


@router.get("/sync/status", response_model=SyncStatusOut)
def get_sync_status(ctx: AppContext = Depends(get_context)):
    return _status(ctx)


@router.post("/sync/resync", response_model=SyncStatusOut, summary="Re-fetch everything from the database")
async def resync(ctx: AppContext = Depends(get_context)):
    await ctx.sync.resync()
    return _status(ctx)
