# tests/test_notification_service.py
"""Unit tests for overdue alert delivery."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from library_attendance.services.notification_service import NotificationDispatcher, format_duration
from library_attendance.services.records import PatronRecord, STUDENT

PATRON = PatronRecord(id="ST-001", category=STUDENT, first_name="John", surname="Doe")


def mock_client(response=None, error=None):
    client = MagicMock()
    client.post = AsyncMock(return_value=response, side_effect=error)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


class TestNotificationDispatcher:
    def test_format_duration(self):
        assert format_duration(185) == "3h 5m"
        assert format_duration(59) == "0h 59m"

    @pytest.mark.asyncio
    async def test_log_only_without_webhook(self):
        dispatcher = NotificationDispatcher(webhook_url=None)
        with patch("library_attendance.services.notification_service.httpx.AsyncClient") as client_cls:
            assert await dispatcher.send_overdue_alert(PATRON, 181, "desk@example.com") is False
            client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_posts_payload(self):
        client = mock_client(response=MagicMock(status_code=202))
        dispatcher = NotificationDispatcher(webhook_url="http://relay.local/alerts")

        with patch("library_attendance.services.notification_service.httpx.AsyncClient", return_value=client):
            assert await dispatcher.send_overdue_alert(PATRON, 181, "desk@example.com") is True

        client.post.assert_awaited_once_with(
            "http://relay.local/alerts",
            json={"patronName": "John Doe", "patronId": "ST-001", "duration": 181,
                  "recipient": "desk@example.com"},
        )

    @pytest.mark.asyncio
    async def test_no_recipient_skips_webhook(self):
        client = mock_client(response=MagicMock(status_code=200))
        dispatcher = NotificationDispatcher(webhook_url="http://relay.local/alerts")

        with patch("library_attendance.services.notification_service.httpx.AsyncClient", return_value=client):
            assert await dispatcher.send_overdue_alert(PATRON, 181, "") is False
        client.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_http_error_status_is_swallowed(self):
        client = mock_client(response=MagicMock(status_code=500))
        dispatcher = NotificationDispatcher(webhook_url="http://relay.local/alerts")

        with patch("library_attendance.services.notification_service.httpx.AsyncClient", return_value=client):
            assert await dispatcher.send_overdue_alert(PATRON, 200, "desk@example.com") is False

    @pytest.mark.asyncio
    async def test_transport_error_is_swallowed(self):
        client = mock_client(error=httpx.ConnectError("connection refused"))
        dispatcher = NotificationDispatcher(webhook_url="http://relay.local/alerts")

        with patch("library_attendance.services.notification_service.httpx.AsyncClient", return_value=client):
            assert await dispatcher.send_overdue_alert(PATRON, 200, "desk@example.com") is False
