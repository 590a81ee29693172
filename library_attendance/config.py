# library_attendance/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────────────────
    # Leave unset to run offline (demo mode, in-memory store only)
    DATABASE_URL: Optional[str] = None

    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8080

    # ── Security ──────────────────────────────────────────────────────────
    API_KEY: Optional[str] = None   # Set in .env to enable auth on API endpoints

    # ── Monitor ───────────────────────────────────────────────────────────
    MONITOR_INTERVAL_SECONDS: float = 60.0
    HISTORY_LIMIT: int = 100        # Closed sessions kept in the local history view

    # ── Notifications ─────────────────────────────────────────────────────
    NOTIFY_WEBHOOK_URL: Optional[str] = None   # e.g. an email relay endpoint
    NOTIFY_TIMEOUT_SECONDS: float = 10.0

    # ── Policy defaults (used until a settings row exists) ────────────────
    DEFAULT_DAILY_CAPACITY: int = 120
    DEFAULT_AI_INSIGHTS_ENABLED: bool = True
    DEFAULT_AUTO_CHECKOUT_ENABLED: bool = False
    DEFAULT_AUTO_CHECKOUT_HOURS: int = 12
    DEFAULT_NOTIFICATIONS_ENABLED: bool = True
    DEFAULT_NOTIFICATION_EMAIL: str = "library-desk@example.com"
    DEFAULT_ALERT_THRESHOLD_MINUTES: int = 180

    # ── Demo mode ─────────────────────────────────────────────────────────
    SEED_DEMO_PATRONS: bool = True

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    @property
    def IS_CONNECTED(self) -> bool:
        return bool(self.DATABASE_URL)

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
