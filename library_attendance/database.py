# library_attendance/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy (PostgreSQL in production). When DATABASE_URL is unset the
service runs offline and no engine is created.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from library_attendance.config import settings

Base = declarative_base()


def make_engine(url: str, **kwargs):
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, **kwargs)
    return create_engine(
        url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        pool_size=10,
        max_overflow=20,
        echo=False,                  # Set True to log all SQL queries (debug only)
        **kwargs,
    )


engine = make_engine(settings.DATABASE_URL) if settings.DATABASE_URL else None

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(bind=None):
    """
    Creates all DB tables. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from library_attendance.models.patron import Patron              # noqa
    from library_attendance.models.session import PatronSession      # noqa
    from library_attendance.models.app_settings import SettingsRow   # noqa

    Base.metadata.create_all(bind=bind or engine)
