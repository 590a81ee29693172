# library_attendance/services/session_store.py
"""
Session store — the process-wide view of patrons, active sessions, recent
history, today's visits and the current policy settings.

Offline, the local backend mutates it directly. Connected, it is refreshed by
the sync service after change-feed events, so it can briefly lag a write that
was just issued. Listeners (occupancy accounting) run after every mutation.
Everything runs on the event loop thread: no locking.
"""

from datetime import datetime
from typing import Callable, Optional

from library_attendance.schemas.settings import AppSettings, default_app_settings
from library_attendance.services.records import PatronRecord, SessionRecord, StoreSnapshot
from library_attendance.utils.clock import SystemClock, start_of_day
from library_attendance.utils.logger import get_logger

logger = get_logger(__name__)

ONLINE = "online"
SYNCING = "syncing"
OFFLINE = "offline"
ERROR = "error"


class SessionStore:
    def __init__(self, app_settings: Optional[AppSettings] = None, history_limit: int = 100, clock=None):
        self.clock = clock or SystemClock()
        self.history_limit = history_limit
        self.settings: AppSettings = app_settings or default_app_settings()
        self.patrons: dict[str, PatronRecord] = {}
        self._active: dict[str, SessionRecord] = {}
        self._history: list[SessionRecord] = []
        self._today: list[SessionRecord] = []
        self.status = ONLINE
        self.last_error: Optional[str] = None
        self.last_sync: Optional[datetime] = None
        self.error_count = 0
        # Alert flags set here whose database write failed; the monitor retries them
        self.pending_alert_flags: set[str] = set()
        self._listeners: list[Callable] = []

    # ── Listeners ─────────────────────────────────────────────────────────
    def subscribe(self, listener: Callable) -> Callable:
        """listener(store) runs after every mutation. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Store listener {listener!r} failed: {e}", exc_info=True)

    # ── Reads ─────────────────────────────────────────────────────────────
    @property
    def active_sessions(self) -> list[SessionRecord]:
        return list(self._active.values())

    @property
    def history(self) -> list[SessionRecord]:
        """Most recently closed first."""
        return list(self._history)

    @property
    def today_sessions(self) -> list[SessionRecord]:
        day_start = start_of_day(self.clock.now())
        return [s for s in self._today if s.check_in >= day_start]

    def get_active(self, session_id: str) -> Optional[SessionRecord]:
        return self._active.get(session_id)

    def active_for_patron(self, patron_id: str) -> Optional[SessionRecord]:
        for session in self._active.values():
            if session.patron_id == patron_id:
                return session
        return None

    def get_patron(self, patron_id: str) -> Optional[PatronRecord]:
        return self.patrons.get(patron_id)

    # ── Local mutations ───────────────────────────────────────────────────
    def apply_check_in(self, session: SessionRecord):
        day_start = start_of_day(self.clock.now())
        self._active[session.id] = session
        self._today = [s for s in self._today if s.check_in >= day_start]
        self._today.append(session)
        self._notify()

    def apply_check_out(self, closed: SessionRecord):
        self._active.pop(closed.id, None)
        self.pending_alert_flags.discard(closed.id)
        self._history.insert(0, closed)
        del self._history[self.history_limit:]
        self._today = [closed if s.id == closed.id else s for s in self._today]

        patron = self.patrons.get(closed.patron_id)
        if patron and closed.duration:
            patron.total_hours = round(patron.total_hours + closed.duration / 60, 2)
        self._notify()

    def mark_alert_triggered(self, session_id: str) -> bool:
        """Set the flag on an active session. False if it is gone or already set."""
        session = self._active.get(session_id)
        if session is None or session.alert_triggered:
            return False
        session.alert_triggered = True
        self._notify()
        return True

    def upsert_patron(self, patron: PatronRecord):
        self.patrons[patron.id] = patron
        self._notify()

    def remove_patron(self, patron_id: str) -> bool:
        if self.patrons.pop(patron_id, None) is None:
            return False
        # Mirrors ON DELETE CASCADE on the sessions table
        self._active = {k: s for k, s in self._active.items() if s.patron_id != patron_id}
        self._history = [s for s in self._history if s.patron_id != patron_id]
        self._today = [s for s in self._today if s.patron_id != patron_id]
        self._notify()
        return True

    def set_settings(self, app_settings: AppSettings):
        self.settings = app_settings
        self._notify()

    # ── Sync ──────────────────────────────────────────────────────────────
    def replace_all(self, snapshot: StoreSnapshot):
        """Swap in a freshly fetched snapshot from the authoritative store."""
        flagged = {s.id for s in self._active.values() if s.alert_triggered}
        self.patrons = {p.id: p for p in snapshot.patrons}
        self._active = {s.id: s for s in snapshot.active}
        # alert_triggered never reverts, even when the database has not caught up
        for session in self._active.values():
            if session.id in flagged:
                session.alert_triggered = True
        self.pending_alert_flags &= set(self._active)
        self._history = sorted(snapshot.history, key=lambda s: s.check_out, reverse=True)[: self.history_limit]
        self._today = list(snapshot.today)
        if snapshot.settings is not None:
            self.settings = snapshot.settings
        self.last_sync = self.clock.now()
        self._notify()

    def set_status(self, status: str, error: Optional[str] = None):
        self.status = status
        if status == ERROR:
            self.last_error = error
        elif status in (ONLINE, OFFLINE):
            self.last_error = None

    def set_error(self, message: str):
        """Record a remote failure. Existing data stays untouched."""
        logger.error(f"[SYNC] {message}")
        self.error_count += 1
        self.set_status(ERROR, message)
