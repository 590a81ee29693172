# library_attendance/services/occupancy_service.py
"""
Occupancy accounting — derived counts over the active session set.
No storage of its own: OccupancyAccountant recomputes on every store change.
"""

from dataclasses import dataclass, field
from typing import Optional

from library_attendance.services.records import PATRON_CATEGORIES
from library_attendance.services.session_store import SessionStore
from library_attendance.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class OccupancySnapshot:
    active_total: int
    active_by_category: dict
    daily_capacity: int
    remaining_seats: int
    occupancy_percentage: float
    today_visits: int = 0
    today_visits_by_category: dict = field(default_factory=dict)

    @property
    def is_full(self) -> bool:
        return self.remaining_seats == 0


def _by_category(sessions, patrons) -> dict:
    counts = {c: 0 for c in PATRON_CATEGORIES}
    for s in sessions:
        patron = patrons.get(s.patron_id)
        # Sessions of unknown patrons only count towards the totals
        if patron and patron.category in counts:
            counts[patron.category] += 1
    return counts


def occupancy_percentage(active_total: int, daily_capacity: int) -> float:
    if daily_capacity <= 0:
        return 100.0 if active_total > 0 else 0.0
    return min(100.0, active_total / daily_capacity * 100)


def compute_occupancy(active_sessions, patrons: dict, daily_capacity: int,
                      today_sessions: Optional[list] = None) -> OccupancySnapshot:
    active = [s for s in active_sessions if s.check_out is None]
    today = today_sessions or []
    return OccupancySnapshot(
        active_total=len(active),
        active_by_category=_by_category(active, patrons),
        daily_capacity=daily_capacity,
        remaining_seats=max(0, daily_capacity - len(active)),
        occupancy_percentage=occupancy_percentage(len(active), daily_capacity),
        today_visits=len(today),
        today_visits_by_category=_by_category(today, patrons),
    )


class OccupancyAccountant:
    """Keeps `current` in step with the store."""

    def __init__(self, store: SessionStore):
        self.store = store
        self.current: OccupancySnapshot = self._compute()
        self._unsubscribe = store.subscribe(self._on_store_change)

    def _compute(self) -> OccupancySnapshot:
        return compute_occupancy(
            self.store.active_sessions,
            self.store.patrons,
            self.store.settings.daily_capacity,
            self.store.today_sessions,
        )

    def _on_store_change(self, _store):
        previous = self.current
        self.current = self._compute()
        if self.current.is_full and not previous.is_full:
            logger.warning(
                f"[OCCUPANCY] Capacity reached: {self.current.active_total}/{self.current.daily_capacity}"
            )

    def close(self):
        self._unsubscribe()
