# library_attendance/routers/sessions.py
"""
Check-in / check-out endpoints + session views.
POST /sessions/check-in           — open a session for a patron
POST /sessions/{id}/check-out     — close it
GET  /sessions/active | history | today
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from library_attendance.context import AppContext, get_context
from library_attendance.schemas.session import CheckInRequest, CheckOutRequest, SessionOut

router = APIRouter()


def _raise_if_store_error(ctx: AppContext, errors_before: int):
    """503 only when this request itself hit a remote failure."""
    if ctx.store.error_count != errors_before:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail=ctx.store.last_error or "Store unavailable")


@router.post("/sessions/check-in", response_model=SessionOut, status_code=status.HTTP_201_CREATED,
             summary="Check a patron in")
async def check_in(body: CheckInRequest, ctx: AppContext = Depends(get_context)):
    if ctx.store.get_patron(body.patron_id) is None:
        raise HTTPException(status_code=404, detail=f"Patron '{body.patron_id}' not found")

    errors_before = ctx.store.error_count
    session = await ctx.lifecycle.check_in(body.patron_id)
    if session is None:
        _raise_if_store_error(ctx, errors_before)
        existing = ctx.store.active_for_patron(body.patron_id)
        detail = f"Patron '{body.patron_id}' is already checked in"
        if existing:
            detail += f" (session {existing.id})"
        raise HTTPException(status_code=409, detail=detail)
    return session


@router.post("/sessions/{session_id}/check-out", response_model=SessionOut, summary="Check a session out")
async def check_out(session_id: str, body: Optional[CheckOutRequest] = None,
                    ctx: AppContext = Depends(get_context)):
    notes = body.notes if body else None
    errors_before = ctx.store.error_count
    closed = await ctx.lifecycle.check_out(session_id, notes=notes)
    if closed is None:
        _raise_if_store_error(ctx, errors_before)
        if any(s.id == session_id for s in ctx.store.history):
            raise HTTPException(status_code=409, detail=f"Session '{session_id}' is already closed")
        raise HTTPException(status_code=404, detail=f"No active session '{session_id}'")
    return closed


@router.get("/sessions/active", response_model=list[SessionOut], summary="Patrons currently inside")
def get_active_sessions(ctx: AppContext = Depends(get_context)):
    return sorted(ctx.store.active_sessions, key=lambda s: s.check_in)


@router.get("/sessions/history", response_model=list[SessionOut], summary="Recently closed sessions")
def get_history(limit: int = 50, patron_id: Optional[str] = None, ctx: AppContext = Depends(get_context)):
    """Newest check-out first. Filter by patron_id."""
    history = ctx.store.history
    if patron_id:
        history = [s for s in history if s.patron_id == patron_id]
    return history[:limit]


@router.get("/sessions/today", response_model=list[SessionOut], summary="Sessions started today")
def get_today_sessions(ctx: AppContext = Depends(get_context)):
    return ctx.store.today_sessions
