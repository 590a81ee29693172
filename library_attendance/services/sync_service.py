# library_attendance/services/sync_service.py
"""
Keeps the session store in step with the authoritative database.

  - resync(): pulls patrons, active sessions, the last HISTORY_LIMIT closed
    sessions, today's sessions and the settings row in one go
  - connect(): subscribes to every change on patrons / sessions / settings
    and resyncs silently on each one

Failures put the store in the error state and leave its data alone. There is
no automatic retry: callers (the API, the operator) decide when to resync.
"""

from library_attendance.services.backends import RemoteStoreError, SessionBackend
from library_attendance.services.change_feed import ANY, ChangeFeed
from library_attendance.services.session_store import OFFLINE, ONLINE, SYNCING, SessionStore
from library_attendance.utils.clock import start_of_day
from library_attendance.utils.logger import get_logger

logger = get_logger(__name__)

WATCHED_TABLES = ("patrons", "sessions", "settings")


class SyncService:
    def __init__(self, store: SessionStore, backend: SessionBackend, feed: ChangeFeed):
        self.store = store
        self.backend = backend
        self.feed = feed
        self._unsubscribers = []

    @property
    def connected(self) -> bool:
        return self.backend.is_remote

    async def resync(self, silent: bool = False) -> bool:
        """Full refresh. Returns True when the store now mirrors the database."""
        if not self.backend.is_remote:
            self.store.set_status(OFFLINE)
            return False

        if not silent:
            self.store.set_status(SYNCING)
        try:
            snapshot = await self.backend.fetch_snapshot(
                self.store.history_limit, start_of_day(self.store.clock.now())
            )
        except RemoteStoreError as e:
            self.store.set_error(str(e))
            return False

        self.store.replace_all(snapshot)
        self.store.set_status(ONLINE)
        logger.debug(
            f"[SYNC] {len(snapshot.patrons)} patrons, {len(snapshot.active)} active, "
            f"{len(snapshot.history)} history, {len(snapshot.today)} today"
        )
        return True

    async def _on_change(self, table: str, event_kind: str):
        logger.debug(f"[SYNC] change on {table} ({event_kind}) — refreshing")
        await self.resync(silent=True)

    def connect(self):
        if self._unsubscribers or not self.backend.is_remote:
            return
        for table in WATCHED_TABLES:
            self._unsubscribers.append(self.feed.on_change(table, ANY, self._on_change))
        logger.info(f"📡 Subscribed to changes on {', '.join(WATCHED_TABLES)}")

    def disconnect(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
