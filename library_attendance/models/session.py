# library_attendance/models/session.py
"""
Sessions table — one row per library visit.
check_out IS NULL means the patron is still inside. The partial unique index
keeps a patron from holding two open sessions even across instances.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey, Index
from library_attendance.database import Base


class PatronSession(Base):
    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True)               # uuid4 hex string
    patron_id = Column(String(32), ForeignKey("patrons.id", ondelete="CASCADE"), nullable=False)
    check_in = Column(DateTime(timezone=True), nullable=False)
    check_out = Column(DateTime(timezone=True))
    duration = Column(Integer)                              # minutes (set on check-out)
    notes = Column(Text)
    alert_triggered = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_sessions_patron_id", "patron_id"),
        Index("idx_sessions_check_in", "check_in"),
        Index(
            "uq_sessions_one_active_per_patron", "patron_id",
            unique=True,
            postgresql_where=check_out.is_(None),
            sqlite_where=check_out.is_(None),
        ),
    )

    def __repr__(self):
        return f"<PatronSession {self.id} patron={self.patron_id} open={self.check_out is None}>"
