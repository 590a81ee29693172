# library_attendance/schemas/session.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class CheckInRequest(BaseModel):
    patron_id: str


class CheckOutRequest(BaseModel):
    notes: Optional[str] = None


class SessionOut(BaseModel):
    id: str
    patron_id: str
    check_in: datetime
    check_out: Optional[datetime] = None
    duration: Optional[int] = None      # minutes
    notes: Optional[str] = None
    alert_triggered: bool = False

    class Config:
        from_attributes = True
