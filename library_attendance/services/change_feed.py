# library_attendance/services/change_feed.py
"""
Change feed — fan-out of insert/update/delete notifications per table.

Subscribers register with on_change(table, event_kind, callback); the SQL
backend publishes after every committed write. This in-process feed covers
every instance sharing one event loop. A websocket or LISTEN/NOTIFY transport
can replace it as long as it keeps the same on_change/publish contract.
"""

import inspect
from typing import Awaitable, Callable, Union

from library_attendance.utils.logger import get_logger

logger = get_logger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
ANY = "*"

EVENT_KINDS = {INSERT, UPDATE, DELETE, ANY}

Callback = Callable[[str, str], Union[None, Awaitable[None]]]


class ChangeFeed:
    def __init__(self):
        self._subscriptions: list[tuple[str, str, Callback]] = []

    def on_change(self, table: str, event_kind: str, callback: Callback) -> Callable[[], None]:
        """
        Register callback(table, event_kind) for one table.
        event_kind is INSERT | UPDATE | DELETE | "*". Returns an unsubscribe function.
        """
        if event_kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind: {event_kind}")
        entry = (table, event_kind, callback)
        self._subscriptions.append(entry)

        def unsubscribe():
            if entry in self._subscriptions:
                self._subscriptions.remove(entry)
        return unsubscribe

    async def publish(self, table: str, event_kind: str):
        """Deliver one change to every matching subscriber, in subscription order."""
        for sub_table, sub_kind, callback in list(self._subscriptions):
            if sub_table != table or sub_kind not in (ANY, event_kind):
                continue
            try:
                result = callback(table, event_kind)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"[FEED] {table}/{event_kind} subscriber failed: {e}", exc_info=True)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)
