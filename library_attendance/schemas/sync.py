# library_attendance/schemas/sync.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class SyncStatusOut(BaseModel):
    status: str                      # online | syncing | offline | error
    connected: bool
    last_error: Optional[str] = None
    last_sync: Optional[datetime] = None
    active_sessions: int
    patrons: int
