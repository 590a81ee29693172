# library_attendance/schemas/patron.py
from pydantic import BaseModel, field_validator
from typing import Optional
from library_attendance.services.records import PATRON_CATEGORIES


class PatronCreate(BaseModel):
    category: str            # Student | Academic Staff | Non-Academic Staff | External Visitor
    first_name: str
    surname: str
    email: Optional[str] = None
    phone: Optional[str] = None
    photo: Optional[str] = None
    level: Optional[str] = None
    program: Optional[str] = None
    department: Optional[str] = None
    national_id: Optional[str] = None

    @field_validator("category")
    @classmethod
    def known_category(cls, value):
        if value not in PATRON_CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(PATRON_CATEGORIES)}")
        return value


class PatronOut(BaseModel):
    id: str
    category: str
    first_name: str
    surname: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    photo: Optional[str] = None
    level: Optional[str] = None
    program: Optional[str] = None
    department: Optional[str] = None
    national_id: Optional[str] = None
    total_hours: float = 0.0

    class Config:
        from_attributes = True
