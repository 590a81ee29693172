# library_attendance/services/records.py
"""
In-memory records held by the session store.
Both backends (local and SQL) produce these, so the lifecycle service, the
monitor and occupancy accounting never touch ORM rows directly.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

STUDENT = "Student"
ACADEMIC_STAFF = "Academic Staff"
NON_ACADEMIC_STAFF = "Non-Academic Staff"
EXTERNAL_VISITOR = "External Visitor"

PATRON_CATEGORIES = (STUDENT, ACADEMIC_STAFF, NON_ACADEMIC_STAFF, EXTERNAL_VISITOR)

MANUAL_CHECKOUT_NOTE = "Manual Checkout"
AUTO_CHECKOUT_NOTE = "Auto-Checkout: System Time Limit Reached"

LOCAL_ID_PREFIX = "local-"


@dataclass
class PatronRecord:
    id: str
    category: str
    first_name: str
    surname: str
    email: Optional[str] = None
    phone: Optional[str] = None
    photo: Optional[str] = None
    level: Optional[str] = None          # students
    program: Optional[str] = None        # students
    department: Optional[str] = None     # staff
    national_id: Optional[str] = None    # external visitors
    total_hours: float = 0.0

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.surname}".strip()


@dataclass
class SessionRecord:
    id: str
    patron_id: str
    check_in: datetime
    check_out: Optional[datetime] = None
    duration: Optional[int] = None       # whole minutes, set on check-out
    notes: Optional[str] = None
    alert_triggered: bool = False

    @property
    def is_active(self) -> bool:
        return self.check_out is None

    @property
    def is_local(self) -> bool:
        """Created offline; never persisted upstream."""
        return self.id.startswith(LOCAL_ID_PREFIX)

    def elapsed_minutes(self, now: datetime) -> float:
        return (now - self.check_in).total_seconds() / 60


@dataclass
class StoreSnapshot:
    """Everything a full resync pulls in one go."""
    patrons: list = field(default_factory=list)
    active: list = field(default_factory=list)
    history: list = field(default_factory=list)
    today: list = field(default_factory=list)
    settings: Optional[object] = None    # AppSettings, None = keep current
