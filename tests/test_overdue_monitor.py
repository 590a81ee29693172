# tests/test_overdue_monitor.py
"""Unit tests for the overdue / auto-checkout monitor, driven by a manual clock."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from library_attendance.schemas.settings import AppSettings, NotificationSettings
from library_attendance.services.backends import LocalBackend, RemoteStoreError
from library_attendance.services.lifecycle_service import SessionLifecycleService
from library_attendance.services.occupancy_service import OccupancyAccountant
from library_attendance.services.overdue_monitor import OverdueMonitor
from library_attendance.services.records import AUTO_CHECKOUT_NOTE, PatronRecord, SessionRecord, STUDENT
from library_attendance.services.session_store import ERROR, SessionStore
from library_attendance.utils.clock import ManualClock

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def make_policy(threshold=180, notifications=True, auto=False, hours=12):
    return AppSettings(
        daily_capacity=10,
        auto_checkout_enabled=auto,
        auto_checkout_hours=hours,
        notifications=NotificationSettings(enabled=notifications, email="desk@example.com",
                                           threshold_minutes=threshold),
    )


def make_monitor(policy=None, patrons=("ST-001",)):
    clock = ManualClock(T0)
    store = SessionStore(policy or make_policy(), clock=clock)
    for pid in patrons:
        store.upsert_patron(PatronRecord(id=pid, category=STUDENT, first_name="Pat", surname=pid))
    lifecycle = SessionLifecycleService(store, LocalBackend(store), clock)
    dispatcher = MagicMock()
    dispatcher.send_overdue_alert = AsyncMock(return_value=True)
    monitor = OverdueMonitor(store, lifecycle, dispatcher, clock=clock)
    return monitor, lifecycle, store, clock, dispatcher


class TestOverdueAlerts:
    @pytest.mark.asyncio
    async def test_single_alert_after_threshold(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor()
        session = await lifecycle.check_in("ST-001")

        clock.advance(minutes=181)
        report = await monitor.tick()

        dispatcher.send_overdue_alert.assert_awaited_once()
        patron, elapsed, recipient = dispatcher.send_overdue_alert.await_args.args
        assert patron.id == "ST-001"
        assert elapsed == 181
        assert recipient == "desk@example.com"
        assert report.alerted == [session.id]
        assert store.get_active(session.id).alert_triggered is True

        clock.advance(minutes=1)
        await monitor.tick()
        dispatcher.send_overdue_alert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_alert_before_threshold(self):
        monitor, lifecycle, _, clock, dispatcher = make_monitor()
        await lifecycle.check_in("ST-001")
        clock.advance(minutes=179)

        await monitor.tick()
        dispatcher.send_overdue_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_alert_when_notifications_disabled(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor(make_policy(notifications=False))
        session = await lifecycle.check_in("ST-001")
        clock.advance(hours=5)

        await monitor.tick()
        dispatcher.send_overdue_alert.assert_not_awaited()
        assert store.get_active(session.id).alert_triggered is False

    @pytest.mark.asyncio
    async def test_dispatch_failure_still_marks_alert(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor()
        dispatcher.send_overdue_alert.side_effect = RuntimeError("smtp down")
        session = await lifecycle.check_in("ST-001")
        clock.advance(minutes=200)

        report = await monitor.tick()
        assert session.id in report.errors
        assert store.get_active(session.id).alert_triggered is True

        clock.advance(minutes=5)
        await monitor.tick()
        assert dispatcher.send_overdue_alert.await_count == 1

    @pytest.mark.asyncio
    async def test_one_failing_session_does_not_stop_the_tick(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor(patrons=("ST-001", "ST-002"))

        async def flaky(patron, elapsed, recipient):
            if patron.id == "ST-001":
                raise RuntimeError("boom")
            return True
        dispatcher.send_overdue_alert.side_effect = flaky

        first = await lifecycle.check_in("ST-001")
        clock.advance(seconds=1)
        second = await lifecycle.check_in("ST-002")
        clock.advance(minutes=190)

        report = await monitor.tick()
        assert report.checked == 2
        assert list(report.errors) == [first.id]
        assert report.alerted == [second.id]

    @pytest.mark.asyncio
    async def test_unknown_patron_is_skipped(self):
        monitor, _, store, clock, dispatcher = make_monitor(patrons=())
        store.apply_check_in(SessionRecord(id="local-1", patron_id="GHOST", check_in=T0))
        clock.advance(hours=4)

        report = await monitor.tick()
        dispatcher.send_overdue_alert.assert_not_awaited()
        assert report.errors == {}
        assert store.get_active("local-1").alert_triggered is False

    @pytest.mark.asyncio
    async def test_future_check_in_is_skipped(self):
        monitor, _, store, _, dispatcher = make_monitor(make_policy(threshold=0, auto=True, hours=1))
        store.apply_check_in(SessionRecord(id="local-2", patron_id="ST-001", check_in=T0 + timedelta(hours=3)))

        report = await monitor.tick()
        assert report.skipped == ["local-2"]
        assert store.get_active("local-2") is not None
        dispatcher.send_overdue_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_flag_persist_failure_sets_store_error(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor()
        session = await lifecycle.check_in("ST-001")
        lifecycle.backend.persist_alert_triggered = AsyncMock(side_effect=RemoteStoreError("write failed"))
        clock.advance(minutes=181)

        report = await monitor.tick()
        assert report.alerted == [session.id]
        assert store.status == ERROR
        dispatcher.send_overdue_alert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_settings_change_applies_on_next_tick(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor()
        await lifecycle.check_in("ST-001")
        clock.advance(minutes=60)

        await monitor.tick()
        dispatcher.send_overdue_alert.assert_not_awaited()

        store.set_settings(make_policy(threshold=30))
        await monitor.tick()
        dispatcher.send_overdue_alert.assert_awaited_once()


class TestAutoCheckout:
    @pytest.mark.asyncio
    async def test_auto_checkout_at_limit(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor(make_policy(auto=True, hours=1))
        accountant = OccupancyAccountant(store)
        session = await lifecycle.check_in("ST-001")
        assert accountant.current.active_total == 1

        clock.advance(minutes=61)
        report = await monitor.tick()

        assert report.auto_checked_out == [session.id]
        closed = store.history[0]
        assert closed.id == session.id
        assert closed.duration == 60
        assert closed.check_out == T0 + timedelta(hours=1)
        assert closed.notes == AUTO_CHECKOUT_NOTE
        assert accountant.current.active_total == 0

    @pytest.mark.asyncio
    async def test_auto_checkout_excludes_alert(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor(make_policy(threshold=180, auto=True, hours=3))
        session = await lifecycle.check_in("ST-001")
        clock.advance(minutes=181)

        report = await monitor.tick()
        assert report.auto_checked_out == [session.id]
        assert report.alerted == []
        dispatcher.send_overdue_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_alert_then_auto_checkout(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor(make_policy(threshold=60, auto=True, hours=2))
        session = await lifecycle.check_in("ST-001")

        clock.advance(minutes=61)
        await monitor.tick()
        clock.advance(minutes=60)
        report = await monitor.tick()

        dispatcher.send_overdue_alert.assert_awaited_once()
        assert report.auto_checked_out == [session.id]
        assert store.history[0].alert_triggered is True
        assert store.history[0].duration == 120


class TestScheduling:
    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        monitor, _, _, _, _ = make_monitor()
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            await asyncio.sleep(0)

        monitor._sleep = fake_sleep
        monitor.interval_seconds = 60.0
        monitor.start()
        assert monitor.is_running
        for _ in range(5):
            await asyncio.sleep(0)

        await monitor.stop()
        assert not monitor.is_running
        assert sleeps and all(s == 60.0 for s in sleeps)
        assert monitor.last_report is not None

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_task(self):
        monitor, _, _, _, _ = make_monitor()

        async def fake_sleep(seconds):
            await asyncio.sleep(0)

        monitor._sleep = fake_sleep
        monitor.start()
        task = monitor._task
        monitor.start()
        assert monitor._task is task
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        monitor, _, _, _, _ = make_monitor()
        await monitor.stop()
        assert not monitor.is_running

    @pytest.mark.asyncio
    async def test_stop_lets_in_flight_dispatch_finish(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor()
        session = await lifecycle.check_in("ST-001")
        clock.advance(minutes=181)
        started = asyncio.Event()
        state = {"completed": False}

        async def slow_send(patron, elapsed, recipient):
            started.set()
            await asyncio.sleep(0.05)
            state["completed"] = True
            return True
        dispatcher.send_overdue_alert.side_effect = slow_send

        async def fake_sleep(seconds):
            await asyncio.sleep(0)

        monitor._sleep = fake_sleep
        monitor.start()
        await asyncio.wait_for(started.wait(), timeout=1)
        await monitor.stop()

        assert state["completed"] is True
        assert not monitor.is_running
        assert monitor.last_report.alerted == [session.id]
        assert store.get_active(session.id).alert_triggered is True

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_sleep(self):
        monitor, _, _, _, _ = make_monitor()

        async def long_sleep(seconds):
            await asyncio.sleep(3600)

        monitor._sleep = long_sleep
        monitor.start()
        await asyncio.sleep(0)

        await asyncio.wait_for(monitor.stop(), timeout=1)
        assert not monitor.is_running
        assert monitor.last_report is None


class TestPendingAlertFlags:
    @pytest.mark.asyncio
    async def test_failed_flag_write_retried_next_tick(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor()
        session = await lifecycle.check_in("ST-001")
        persist = AsyncMock(side_effect=[RemoteStoreError("write failed"), True])
        lifecycle.backend.persist_alert_triggered = persist
        clock.advance(minutes=181)

        await monitor.tick()
        assert store.pending_alert_flags == {session.id}

        clock.advance(minutes=1)
        await monitor.tick()

        assert persist.await_count == 2
        assert store.pending_alert_flags == set()
        dispatcher.send_overdue_alert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pending_flag_dropped_once_session_closes(self):
        monitor, lifecycle, store, clock, dispatcher = make_monitor()
        session = await lifecycle.check_in("ST-001")
        lifecycle.backend.persist_alert_triggered = AsyncMock(side_effect=RemoteStoreError("write failed"))
        clock.advance(minutes=181)
        await monitor.tick()

        await lifecycle.check_out(session.id)
        assert store.pending_alert_flags == set()
