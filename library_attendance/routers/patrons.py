# library_attendance/routers/patrons.py
"""Patron registry — list, look up, register and remove patrons."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from library_attendance.context import AppContext, get_context
from library_attendance.schemas.patron import PatronCreate, PatronOut
from library_attendance.services.backends import RemoteStoreError
from library_attendance.services.patron_service import generate_patron_id
from library_attendance.services.records import PatronRecord

router = APIRouter()


@router.get("/patrons", response_model=list[PatronOut], summary="List registered patrons")
def list_patrons(category: Optional[str] = None, ctx: AppContext = Depends(get_context)):
    patrons = sorted(ctx.store.patrons.values(), key=lambda p: p.id)
    if category:
        patrons = [p for p in patrons if p.category == category]
    return [PatronOut.model_validate(p) for p in patrons]


@router.get("/patrons/{patron_id}", response_model=PatronOut)
def get_patron(patron_id: str, ctx: AppContext = Depends(get_context)):
    patron = ctx.store.get_patron(patron_id)
    if not patron:
        raise HTTPException(status_code=404, detail="Patron not found")
    return PatronOut.model_validate(patron)


@router.post("/patrons", response_model=PatronOut, status_code=201, summary="Register a new patron")
async def register_patron(body: PatronCreate, ctx: AppContext = Depends(get_context)):
    """The id is generated from the category prefix, e.g. ST-006."""
    patron_id = generate_patron_id(body.category, ctx.store.patrons.keys(), ctx.store.settings.id_config)
    patron = PatronRecord(id=patron_id, **body.model_dump())
    try:
        await ctx.backend.add_patron(patron)
    except RemoteStoreError as e:
        ctx.store.set_error(str(e))
        raise HTTPException(status_code=503, detail=str(e))
    return PatronOut.model_validate(patron)


@router.delete("/patrons/{patron_id}", summary="Remove a patron and their sessions")
async def remove_patron(patron_id: str, ctx: AppContext = Depends(get_context)):
    try:
        removed = await ctx.backend.delete_patron(patron_id)
    except RemoteStoreError as e:
        ctx.store.set_error(str(e))
        raise HTTPException(status_code=503, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail="Patron not found")
    return {"status": "removed", "patron_id": patron_id}
