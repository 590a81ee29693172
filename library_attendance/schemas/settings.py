# library_attendance/schemas/settings.py
from pydantic import BaseModel, Field
from library_attendance.config import settings as config


class NotificationSettings(BaseModel):
    enabled: bool = True
    email: str = ""
    threshold_minutes: int = Field(default=180, ge=0)


class IdConfig(BaseModel):
    student_prefix: str = "ST"
    academic_staff_prefix: str = "AS"
    non_academic_staff_prefix: str = "NAS"
    visitor_prefix: str = "EV"
    padding: int = Field(default=3, ge=1, le=10)


class AppSettings(BaseModel):
    """Policy read by the overdue monitor and occupancy accounting."""
    daily_capacity: int = Field(default=120, ge=0)
    ai_insights_enabled: bool = True
    auto_checkout_enabled: bool = False
    auto_checkout_hours: int = Field(default=12, ge=1)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    id_config: IdConfig = Field(default_factory=IdConfig)


def default_app_settings() -> AppSettings:
    """Policy defaults from the process configuration."""
    return AppSettings(
        daily_capacity=config.DEFAULT_DAILY_CAPACITY,
        ai_insights_enabled=config.DEFAULT_AI_INSIGHTS_ENABLED,
        auto_checkout_enabled=config.DEFAULT_AUTO_CHECKOUT_ENABLED,
        auto_checkout_hours=config.DEFAULT_AUTO_CHECKOUT_HOURS,
        notifications=NotificationSettings(
            enabled=config.DEFAULT_NOTIFICATIONS_ENABLED,
            email=config.DEFAULT_NOTIFICATION_EMAIL,
            threshold_minutes=config.DEFAULT_ALERT_THRESHOLD_MINUTES,
        ),
    )
