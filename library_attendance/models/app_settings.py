# library_attendance/models/app_settings.py
"""
Settings table — a single row (id = 'global_config') holding the policy the
overdue monitor and occupancy accounting read.
"""

from sqlalchemy import Column, Integer, String, Boolean, JSON
from library_attendance.database import Base

GLOBAL_SETTINGS_ID = "global_config"


class SettingsRow(Base):
    __tablename__ = "settings"

    id = Column(String(32), primary_key=True, default=GLOBAL_SETTINGS_ID)
    daily_capacity = Column(Integer)
    ai_insights_enabled = Column(Boolean)
    auto_checkout_enabled = Column(Boolean)
    auto_checkout_hours = Column(Integer)
    notif_enabled = Column(Boolean)
    notif_email = Column(String(200))
    notif_threshold_mins = Column(Integer)
    id_config = Column(JSON)

    def __repr__(self):
        return f"<SettingsRow {self.id} capacity={self.daily_capacity}>"
