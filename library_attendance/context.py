# library_attendance/context.py
"""
Application context — owns the store and every service wired around it.
Built once at startup and handed to the API (app.state.context) and to the
overdue monitor, so nothing reads shared state through module globals.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from library_attendance.config import Settings, settings as default_config
from library_attendance.schemas.settings import default_app_settings
from library_attendance.services.backends import LocalBackend, SessionBackend, SqlBackend
from library_attendance.services.change_feed import ChangeFeed
from library_attendance.services.lifecycle_service import SessionLifecycleService
from library_attendance.services.notification_service import NotificationDispatcher, build_dispatcher
from library_attendance.services.occupancy_service import OccupancyAccountant
from library_attendance.services.overdue_monitor import OverdueMonitor
from library_attendance.services.patron_service import demo_patrons
from library_attendance.services.session_store import OFFLINE, SessionStore
from library_attendance.services.sync_service import SyncService
from library_attendance.utils.clock import SystemClock
from library_attendance.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AppContext:
    store: SessionStore
    feed: ChangeFeed
    backend: SessionBackend
    lifecycle: SessionLifecycleService
    monitor: OverdueMonitor
    accountant: OccupancyAccountant
    sync: SyncService
    dispatcher: NotificationDispatcher

    @property
    def demo_mode(self) -> bool:
        return not self.backend.is_remote

    async def startup(self, start_monitor: bool = True):
        self.sync.connect()
        await self.sync.resync()
        if start_monitor:
            self.monitor.start()

    async def shutdown(self):
        await self.monitor.stop()
        self.sync.disconnect()
        self.accountant.close()


def build_context(config: Optional[Settings] = None, session_factory=None, clock=None,
                  dispatcher: Optional[NotificationDispatcher] = None) -> AppContext:
    """
    Connected when a session factory is given or DATABASE_URL is set and the
    database answers; otherwise offline with the demo roster.
    """
    config = config or default_config
    clock = clock or SystemClock()
    store = SessionStore(default_app_settings(), history_limit=config.HISTORY_LIMIT, clock=clock)
    feed = ChangeFeed()

    backend: Optional[SessionBackend] = None
    if session_factory is None and config.DATABASE_URL:
        from library_attendance.database import SessionLocal
        session_factory = SessionLocal
    if session_factory is not None:
        sql_backend = SqlBackend(session_factory, feed, defaults=store.settings)
        ok, message = sql_backend.verify_connection()
        if ok:
            backend = sql_backend
            logger.info(f"✅ {message}")
        else:
            logger.warning(f"⚠️  Database unavailable, running offline: {message}")

    if backend is None:
        backend = LocalBackend(store)
        store.set_status(OFFLINE)
        if config.SEED_DEMO_PATRONS:
            for patron in demo_patrons():
                store.upsert_patron(patron)
            logger.info(f"Demo mode: seeded {len(store.patrons)} patrons")

    lifecycle = SessionLifecycleService(store, backend, clock)
    dispatcher = dispatcher or build_dispatcher()
    monitor = OverdueMonitor(store, lifecycle, dispatcher, clock=clock,
                             interval_seconds=config.MONITOR_INTERVAL_SECONDS)
    return AppContext(
        store=store,
        feed=feed,
        backend=backend,
        lifecycle=lifecycle,
        monitor=monitor,
        accountant=OccupancyAccountant(store),
        sync=SyncService(store, backend, feed),
        dispatcher=dispatcher,
    )


def get_context(request: Request) -> AppContext:
    """FastAPI dependency — the context built at startup."""
    return request.app.state.context
