# library_attendance/models/patron.py
"""
Patrons table — registered library users.
Read by the overdue monitor (alert recipient details) and occupancy accounting
(category breakdown). total_hours is bumped whenever one of their sessions closes.
"""

from sqlalchemy import Column, String, DateTime, Float, Index
from library_attendance.database import Base


class Patron(Base):
    __tablename__ = "patrons"

    id = Column(String(32), primary_key=True)               # e.g. ST-001
    category = Column(String(32), nullable=False)           # Student | Academic Staff | ...
    first_name = Column(String(100), nullable=False)
    surname = Column(String(100), nullable=False)
    email = Column(String(200))
    phone = Column(String(50))
    photo = Column(String(500))
    level = Column(String(32))                              # students only
    program = Column(String(100))                           # students only
    department = Column(String(100))                        # staff only
    national_id = Column(String(64))                        # external visitors only
    total_hours = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_patrons_category", "category"),
    )

    @property
    def name(self) -> str:
        return f"{self.first_name or ''} {self.surname or ''}".strip()

    def __repr__(self):
        return f"<Patron {self.id} category={self.category}>"
