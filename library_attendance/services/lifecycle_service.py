# library_attendance/services/lifecycle_service.py
"""
Check-in / check-out state machine: OPEN -> CLOSED, no re-opening.

  - check_in opens a session unless the patron already has one open (no-op)
  - check_out closes an open session, fixing duration and notes (no-op if the
    session is unknown or already closed, e.g. another client got there first)
  - duration = max(1, round(minutes between check-in and check-out))

Preconditions are checked against the session store; the backend re-checks
against its own state, so a lagging store cannot produce duplicates.
Notifications are the overdue monitor's business, not this service's.
"""

import math
from datetime import datetime
from typing import Optional

from library_attendance.services.backends import RemoteStoreError, SessionBackend
from library_attendance.services.records import MANUAL_CHECKOUT_NOTE, SessionRecord
from library_attendance.services.session_store import SessionStore
from library_attendance.utils.clock import SystemClock
from library_attendance.utils.logger import get_logger

logger = get_logger(__name__)


def compute_duration_minutes(check_in: datetime, check_out: datetime) -> int:
    """Whole minutes, half rounded up, never below 1 (clock skew, instant re-entry)."""
    minutes = (check_out - check_in).total_seconds() / 60
    return max(1, int(math.floor(minutes + 0.5)))


class SessionLifecycleService:
    def __init__(self, store: SessionStore, backend: SessionBackend, clock=None):
        self.store = store
        self.backend = backend
        self.clock = clock or SystemClock()

    async def check_in(self, patron_id: str, now: Optional[datetime] = None) -> Optional[SessionRecord]:
        """Open a session for patron_id. Returns None if one is already open or the write failed."""
        existing = self.store.active_for_patron(patron_id)
        if existing:
            logger.info(f"[CHECK-IN] {patron_id} already checked in (session {existing.id}) — ignored")
            return None

        now = now or self.clock.now()
        try:
            session = await self.backend.open_session(patron_id, now)
        except RemoteStoreError as e:
            self.store.set_error(str(e))
            return None

        if session:
            logger.info(f"[CHECK-IN] {patron_id} → session {session.id}")
        return session

    async def check_out(self, session_id: str, now: Optional[datetime] = None,
                        notes: Optional[str] = None) -> Optional[SessionRecord]:
        """Close an open session. Returns the closed record, or None if there was nothing to close."""
        session = self.store.get_active(session_id)
        if session is None:
            logger.debug(f"[CHECK-OUT] session {session_id} not active — ignored")
            return None

        now = now or self.clock.now()
        duration = compute_duration_minutes(session.check_in, now)
        try:
            closed = await self.backend.close_session(session_id, now, duration, notes or MANUAL_CHECKOUT_NOTE)
        except RemoteStoreError as e:
            self.store.set_error(str(e))
            return None

        if closed is None:
            logger.info(f"[CHECK-OUT] session {session_id} was already closed — ignored")
            return None

        logger.info(f"[CHECK-OUT] {closed.patron_id} session {closed.id} closed after {closed.duration} min ({closed.notes})")
        return closed
