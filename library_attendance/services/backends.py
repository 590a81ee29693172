# library_attendance/services/backends.py
"""
Storage backends behind the lifecycle service.

LocalBackend — offline/demo mode. Writes land in the session store directly
and synchronously; session ids are local-<epoch ms> and never go upstream.

SqlBackend — connected mode. Writes go to the database (one transaction each)
and are announced on the change feed; the store only sees them once the sync
service re-fetches. Closing is conditional on check_out IS NULL, so two
racing check-outs close the row exactly once.

Both return None for benign precondition misses (already open, already
closed, unknown id). SqlBackend raises RemoteStoreError for I/O failures.
"""

import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from library_attendance.models.app_settings import GLOBAL_SETTINGS_ID, SettingsRow
from library_attendance.models.patron import Patron
from library_attendance.models.session import PatronSession
from library_attendance.schemas.settings import AppSettings, IdConfig, NotificationSettings
from library_attendance.services.change_feed import ChangeFeed, DELETE, INSERT, UPDATE
from library_attendance.services.records import LOCAL_ID_PREFIX, PatronRecord, SessionRecord, StoreSnapshot
from library_attendance.services.session_store import SessionStore
from library_attendance.utils.clock import as_utc
from library_attendance.utils.logger import get_logger

logger = get_logger(__name__)


class RemoteStoreError(Exception):
    """Network or database failure talking to the authoritative store."""


class SessionBackend(ABC):
    is_remote = False

    @abstractmethod
    async def open_session(self, patron_id: str, check_in: datetime) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    async def close_session(self, session_id: str, check_out: datetime, duration: int,
                            notes: str) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    async def persist_alert_triggered(self, session_id: str) -> bool:
        ...

    @abstractmethod
    async def save_settings(self, app_settings: AppSettings):
        ...

    @abstractmethod
    async def add_patron(self, patron: PatronRecord):
        ...

    @abstractmethod
    async def delete_patron(self, patron_id: str) -> bool:
        ...

    async def fetch_snapshot(self, history_limit: int, day_start: datetime) -> StoreSnapshot:
        raise NotImplementedError(f"{type(self).__name__} has no upstream to fetch from")


# ── Offline ──────────────────────────────────────────────────────────────────
class LocalBackend(SessionBackend):
    """In-memory backend. Nothing here awaits, so each call is atomic on the loop."""

    def __init__(self, store: SessionStore):
        self.store = store

    def _local_id(self, when: datetime) -> str:
        base = f"{LOCAL_ID_PREFIX}{int(when.timestamp() * 1000)}"
        taken = {s.id for s in self.store.active_sessions} | {s.id for s in self.store.history}
        taken |= {s.id for s in self.store.today_sessions}
        candidate, n = base, 1
        while candidate in taken:
            candidate = f"{base}-{n}"
            n += 1
        return candidate

    async def open_session(self, patron_id, check_in):
        if self.store.active_for_patron(patron_id):
            return None
        session = SessionRecord(id=self._local_id(check_in), patron_id=patron_id, check_in=check_in)
        self.store.apply_check_in(session)
        return session

    async def close_session(self, session_id, check_out, duration, notes):
        session = self.store.get_active(session_id)
        if session is None:
            return None
        closed = replace(session, check_out=check_out, duration=duration, notes=notes)
        self.store.apply_check_out(closed)
        return closed

    async def persist_alert_triggered(self, session_id):
        # The monitor already flipped the flag in the store; nothing further to write
        session = self.store.get_active(session_id)
        if session is None:
            return False
        if not session.alert_triggered:
            self.store.mark_alert_triggered(session_id)
        return True

    async def save_settings(self, app_settings):
        self.store.set_settings(app_settings)

    async def add_patron(self, patron):
        self.store.upsert_patron(patron)

    async def delete_patron(self, patron_id):
        return self.store.remove_patron(patron_id)


# ── Connected ────────────────────────────────────────────────────────────────
def _patron_record(row: Patron) -> PatronRecord:
    return PatronRecord(
        id=row.id, category=row.category,
        first_name=row.first_name or "", surname=row.surname or "",
        email=row.email, phone=row.phone, photo=row.photo,
        level=row.level, program=row.program,
        department=row.department, national_id=row.national_id,
        total_hours=row.total_hours or 0.0,
    )


def _session_record(row: PatronSession) -> SessionRecord:
    return SessionRecord(
        id=row.id, patron_id=row.patron_id,
        check_in=as_utc(row.check_in), check_out=as_utc(row.check_out),
        duration=row.duration, notes=row.notes,
        alert_triggered=bool(row.alert_triggered),
    )


def _settings_from_row(row: SettingsRow, defaults: AppSettings) -> AppSettings:
    """Columns left NULL fall back to the configured defaults."""
    def pick(value, fallback):
        return fallback if value is None else value

    notif = defaults.notifications
    return AppSettings(
        daily_capacity=pick(row.daily_capacity, defaults.daily_capacity),
        ai_insights_enabled=pick(row.ai_insights_enabled, defaults.ai_insights_enabled),
        auto_checkout_enabled=pick(row.auto_checkout_enabled, defaults.auto_checkout_enabled),
        auto_checkout_hours=pick(row.auto_checkout_hours, defaults.auto_checkout_hours),
        notifications=NotificationSettings(
            enabled=pick(row.notif_enabled, notif.enabled),
            email=pick(row.notif_email, notif.email),
            threshold_minutes=pick(row.notif_threshold_mins, notif.threshold_minutes),
        ),
        id_config=IdConfig(**row.id_config) if row.id_config else defaults.id_config,
    )


class SqlBackend(SessionBackend):
    is_remote = True

    def __init__(self, session_factory, feed: ChangeFeed, defaults: Optional[AppSettings] = None):
        self.session_factory = session_factory
        self.feed = feed
        self.defaults = defaults or AppSettings()

    @contextmanager
    def _db(self, action: str):
        """Fresh DB session per operation; any SQLAlchemy failure becomes RemoteStoreError."""
        db = self.session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            raise RemoteStoreError(f"{action} failed: {e}") from e
        finally:
            db.close()

    def verify_connection(self) -> tuple[bool, str]:
        try:
            with self._db("connection check") as db:
                db.execute(text("SELECT 1"))
                db.query(Patron.id).limit(1).all()
            return True, "Database connected"
        except RemoteStoreError as e:
            return False, str(e)

    async def open_session(self, patron_id, check_in):
        with self._db("check-in") as db:
            open_row = (
                db.query(PatronSession.id)
                .filter(PatronSession.patron_id == patron_id, PatronSession.check_out.is_(None))
                .first()
            )
            if open_row:
                logger.info(f"[CHECK-IN] {patron_id} already has open session {open_row.id} upstream")
                return None

            row = PatronSession(
                id=str(uuid.uuid4()),
                patron_id=patron_id,
                check_in=check_in,
                alert_triggered=False,
                created_at=check_in,
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                # Another instance opened one between our check and insert
                db.rollback()
                logger.info(f"[CHECK-IN] {patron_id} lost the race to another open session")
                return None
            record = _session_record(row)

        await self.feed.publish("sessions", INSERT)
        return record

    async def close_session(self, session_id, check_out, duration, notes):
        with self._db("check-out") as db:
            updated = (
                db.query(PatronSession)
                .filter(PatronSession.id == session_id, PatronSession.check_out.is_(None))
                .update(
                    {PatronSession.check_out: check_out, PatronSession.duration: duration,
                     PatronSession.notes: notes},
                    synchronize_session=False,
                )
            )
            if not updated:
                db.rollback()
                return None

            row = db.get(PatronSession, session_id)
            db.query(Patron).filter(Patron.id == row.patron_id).update(
                {Patron.total_hours: Patron.total_hours + round(duration / 60, 2)},
                synchronize_session=False,
            )
            db.commit()
            record = _session_record(row)

        await self.feed.publish("sessions", UPDATE)
        return record

    async def persist_alert_triggered(self, session_id):
        with self._db("alert flag update") as db:
            updated = (
                db.query(PatronSession)
                .filter(PatronSession.id == session_id, PatronSession.alert_triggered == False)  # noqa: E712
                .update({PatronSession.alert_triggered: True}, synchronize_session=False)
            )
            db.commit()

        if updated:
            await self.feed.publish("sessions", UPDATE)
        return bool(updated)

    async def save_settings(self, app_settings):
        with self._db("settings save") as db:
            db.merge(SettingsRow(
                id=GLOBAL_SETTINGS_ID,
                daily_capacity=app_settings.daily_capacity,
                ai_insights_enabled=app_settings.ai_insights_enabled,
                auto_checkout_enabled=app_settings.auto_checkout_enabled,
                auto_checkout_hours=app_settings.auto_checkout_hours,
                notif_enabled=app_settings.notifications.enabled,
                notif_email=app_settings.notifications.email,
                notif_threshold_mins=app_settings.notifications.threshold_minutes,
                id_config=app_settings.id_config.model_dump(),
            ))
            db.commit()

        await self.feed.publish("settings", UPDATE)

    async def add_patron(self, patron):
        with self._db("patron insert") as db:
            db.add(Patron(
                id=patron.id, category=patron.category,
                first_name=patron.first_name, surname=patron.surname,
                email=patron.email, phone=patron.phone, photo=patron.photo,
                level=patron.level, program=patron.program,
                department=patron.department, national_id=patron.national_id,
                total_hours=patron.total_hours,
            ))
            db.commit()

        await self.feed.publish("patrons", INSERT)

    async def delete_patron(self, patron_id):
        with self._db("patron delete") as db:
            db.query(PatronSession).filter(PatronSession.patron_id == patron_id).delete(synchronize_session=False)
            deleted = db.query(Patron).filter(Patron.id == patron_id).delete(synchronize_session=False)
            db.commit()

        if deleted:
            await self.feed.publish("patrons", DELETE)
        return bool(deleted)

    async def fetch_snapshot(self, history_limit, day_start):
        with self._db("resync") as db:
            patrons = [_patron_record(p) for p in db.query(Patron).all()]
            active = [
                _session_record(s) for s in
                db.query(PatronSession)
                .filter(PatronSession.check_out.is_(None))
                .order_by(PatronSession.check_in)
                .all()
            ]
            history = [
                _session_record(s) for s in
                db.query(PatronSession)
                .filter(PatronSession.check_out.isnot(None))
                .order_by(PatronSession.check_out.desc())
                .limit(history_limit)
                .all()
            ]
            today = [
                _session_record(s) for s in
                db.query(PatronSession)
                .filter(PatronSession.check_in >= day_start)
                .order_by(PatronSession.check_in)
                .all()
            ]
            row = db.get(SettingsRow, GLOBAL_SETTINGS_ID)
            app_settings = _settings_from_row(row, self.defaults) if row else None

        return StoreSnapshot(patrons=patrons, active=active, history=history,
                             today=today, settings=app_settings)
