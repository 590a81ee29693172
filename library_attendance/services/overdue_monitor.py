# library_attendance/services/overdue_monitor.py
"""
Overdue / auto-checkout monitor.

Runs as one asyncio task. Every MONITOR_INTERVAL_SECONDS it walks the active
sessions and, per session:
  1. skips it if the check-in lies in the future (clock skew)
  2. auto-checks it out once it reaches the configured hour limit
     (the recorded check-out is capped at check-in + limit)
  3. otherwise raises one overdue alert when it crosses the threshold

Ticks run back to back (sleep, tick, sleep...) so they never overlap. stop()
cancels the sleep but lets a tick in progress finish its check-outs and
dispatches. Policy is read once per tick. A failure on one session is logged
and the rest of the tick carries on.

The alert flag is set in the store before dispatch and persisted afterwards
regardless of delivery outcome: at most one alert per session. A failed flag
write stays in store.pending_alert_flags and is retried at the next tick.
"""

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from library_attendance.services.backends import RemoteStoreError
from library_attendance.services.lifecycle_service import SessionLifecycleService
from library_attendance.services.notification_service import NotificationDispatcher
from library_attendance.services.records import AUTO_CHECKOUT_NOTE, SessionRecord
from library_attendance.services.session_store import SessionStore
from library_attendance.utils.clock import SystemClock
from library_attendance.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TickReport:
    at: datetime
    checked: int = 0
    auto_checked_out: list = field(default_factory=list)
    alerted: list = field(default_factory=list)
    skipped: list = field(default_factory=list)   # negative elapsed time
    errors: dict = field(default_factory=dict)    # session id -> message


class OverdueMonitor:
    def __init__(self, store: SessionStore, lifecycle: SessionLifecycleService,
                 dispatcher: NotificationDispatcher, clock=None,
                 interval_seconds: float = 60.0, sleep=asyncio.sleep):
        self.store = store
        self.lifecycle = lifecycle
        self.dispatcher = dispatcher
        self.clock = clock or SystemClock()
        self.interval_seconds = interval_seconds
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        self._ticking = False
        self.last_report: Optional[TickReport] = None

    # ── Scheduling ────────────────────────────────────────────────────────
    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.is_running:
            return
        logger.info(f"⏱  Overdue monitor started (every {self.interval_seconds:g}s)")
        self._task = asyncio.create_task(self._run(), name="overdue-monitor")

    async def stop(self):
        """Cancel the timer. A tick already under way runs to completion first."""
        if self._task is None:
            return
        self._stopping = True
        if not self._ticking:
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._stopping = False
        logger.info("🛑 Overdue monitor stopped")

    async def _run(self):
        while not self._stopping:
            await self._sleep(self.interval_seconds)
            if self._stopping:
                break
            self._ticking = True
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Overdue monitor tick failed: {e}", exc_info=True)
            finally:
                self._ticking = False

    # ── One pass ──────────────────────────────────────────────────────────
    async def tick(self, now: Optional[datetime] = None) -> TickReport:
        now = now or self.clock.now()
        policy = self.store.settings.model_copy(deep=True)
        report = TickReport(at=now)

        for session_id in list(self.store.pending_alert_flags):
            if self.store.get_active(session_id) is None:
                self.store.pending_alert_flags.discard(session_id)
                continue
            await self._persist_alert_flag(session_id)

        for session in self.store.active_sessions:
            report.checked += 1
            try:
                await self._process(session, now, policy, report)
            except Exception as e:
                logger.error(f"[MONITOR] session {session.id} ({session.patron_id}) failed: {e}", exc_info=True)
                report.errors[session.id] = str(e)

        if report.auto_checked_out or report.alerted or report.errors:
            logger.info(
                f"[MONITOR] checked={report.checked} auto_checkout={len(report.auto_checked_out)} "
                f"alerts={len(report.alerted)} errors={len(report.errors)}"
            )
        self.last_report = report
        return report

    async def _process(self, session: SessionRecord, now: datetime, policy, report: TickReport):
        elapsed = session.elapsed_minutes(now)
        if elapsed < 0:
            report.skipped.append(session.id)
            return

        if policy.auto_checkout_enabled and elapsed >= policy.auto_checkout_hours * 60:
            limit_at = session.check_in + timedelta(hours=policy.auto_checkout_hours)
            closed = await self.lifecycle.check_out(session.id, now=min(now, limit_at), notes=AUTO_CHECKOUT_NOTE)
            if closed:
                report.auto_checked_out.append(session.id)
            return

        notif = policy.notifications
        if not notif.enabled or session.alert_triggered or elapsed < notif.threshold_minutes:
            return

        patron = self.store.get_patron(session.patron_id)
        if patron is None:
            logger.warning(f"[MONITOR] session {session.id} overdue but patron {session.patron_id} is unknown")
            return

        if not self.store.mark_alert_triggered(session.id):
            return
        try:
            await self.dispatcher.send_overdue_alert(patron, int(math.floor(elapsed)), notif.email)
            report.alerted.append(session.id)
        finally:
            await self._persist_alert_flag(session.id)

    async def _persist_alert_flag(self, session_id: str):
        try:
            await self.lifecycle.backend.persist_alert_triggered(session_id)
        except RemoteStoreError as e:
            self.store.pending_alert_flags.add(session_id)
            self.store.set_error(str(e))
        else:
            self.store.pending_alert_flags.discard(session_id)
