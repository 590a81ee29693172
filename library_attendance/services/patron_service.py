# library_attendance/services/patron_service.py
"""
Patron registry helpers: id generation and the demo roster used offline.
Ids look like <prefix>-<zero padded number>, e.g. ST-001, NAS-012.
"""

import re

from library_attendance.schemas.settings import IdConfig
from library_attendance.services.records import (
    ACADEMIC_STAFF, EXTERNAL_VISITOR, NON_ACADEMIC_STAFF, STUDENT, PatronRecord,
)


def category_prefix(category: str, id_config: IdConfig) -> str:
    prefixes = {
        STUDENT: id_config.student_prefix or "ST",
        ACADEMIC_STAFF: id_config.academic_staff_prefix or "AS",
        NON_ACADEMIC_STAFF: id_config.non_academic_staff_prefix or "NAS",
        EXTERNAL_VISITOR: id_config.visitor_prefix or "EV",
    }
    if category not in prefixes:
        raise ValueError(f"Unknown patron category: {category}")
    return prefixes[category]


def generate_patron_id(category: str, existing_ids, id_config: IdConfig) -> str:
    """Next id after the highest number already used for the category's prefix."""
    prefix = category_prefix(category, id_config)
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    numbers = [int(m.group(1)) for m in (pattern.match(i) for i in existing_ids) if m]
    next_number = max(numbers, default=0) + 1
    return f"{prefix}-{str(next_number).zfill(id_config.padding)}"


def demo_patrons() -> list[PatronRecord]:
    return [
        PatronRecord(id="ST-001", category=STUDENT, first_name="John", surname="Doe",
                     email="john@example.com", phone="0240000001",
                     level="Level 100", program="General Nursing", total_hours=45.5),
        PatronRecord(id="ST-002", category=STUDENT, first_name="Jane", surname="Smith",
                     email="jane@example.com", phone="0240000002",
                     level="Level 200", program="Registered Midwifery", total_hours=62.0),
        PatronRecord(id="AS-001", category=ACADEMIC_STAFF, first_name="Robert", surname="Brown",
                     email="robert@example.com", phone="0240000003",
                     department="Nursing Science", total_hours=28.5),
        PatronRecord(id="NAS-001", category=NON_ACADEMIC_STAFF, first_name="Emily", surname="Davis",
                     email="emily@example.com", phone="0240000004",
                     department="Administration", total_hours=89.2),
        PatronRecord(id="EV-001", category=EXTERNAL_VISITOR, first_name="Michael", surname="Wilson",
                     email="mike@example.com", phone="0240000005",
                     national_id="GHA-123456789-0", total_hours=12.0),
    ]
