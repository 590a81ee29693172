# tests/test_change_feed.py
"""Unit tests for the table change feed."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import AsyncMock, MagicMock

from library_attendance.services.change_feed import ANY, DELETE, INSERT, UPDATE, ChangeFeed


class TestChangeFeed:
    @pytest.mark.asyncio
    async def test_matching_kind_delivered(self):
        feed = ChangeFeed()
        cb = MagicMock()
        feed.on_change("sessions", INSERT, cb)

        await feed.publish("sessions", INSERT)
        await feed.publish("sessions", UPDATE)
        await feed.publish("patrons", INSERT)

        cb.assert_called_once_with("sessions", INSERT)

    @pytest.mark.asyncio
    async def test_wildcard_gets_every_kind(self):
        feed = ChangeFeed()
        cb = AsyncMock()
        feed.on_change("patrons", ANY, cb)

        for kind in (INSERT, UPDATE, DELETE):
            await feed.publish("patrons", kind)

        assert cb.await_count == 3

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        feed = ChangeFeed()
        cb = MagicMock()
        unsubscribe = feed.on_change("settings", ANY, cb)
        assert feed.subscriber_count == 1

        unsubscribe()
        unsubscribe()
        await feed.publish("settings", UPDATE)

        cb.assert_not_called()
        assert feed.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(self):
        feed = ChangeFeed()
        broken = AsyncMock(side_effect=RuntimeError("resync exploded"))
        good = MagicMock()
        feed.on_change("sessions", ANY, broken)
        feed.on_change("sessions", ANY, good)

        await feed.publish("sessions", UPDATE)
        good.assert_called_once_with("sessions", UPDATE)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            ChangeFeed().on_change("sessions", "TRUNCATE", MagicMock())
