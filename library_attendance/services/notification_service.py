# library_attendance/services/notification_service.py
"""
Overdue alert delivery.
Called by the overdue monitor once per session that crosses the alert threshold.
Always logs the alert; additionally POSTs it to NOTIFY_WEBHOOK_URL (an email
relay or similar) when one is configured. Best effort: delivery failures are
logged and swallowed, never raised back into the monitor.
"""

from typing import Optional

import httpx

from library_attendance.config import settings
from library_attendance.services.records import PatronRecord
from library_attendance.utils.logger import get_logger

logger = get_logger(__name__)


def format_duration(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60}m"


class NotificationDispatcher:
    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def send_overdue_alert(self, patron: PatronRecord, elapsed_minutes: int, recipient: str) -> bool:
        """Returns True if the webhook accepted the alert (False when logged only or delivery failed)."""
        logger.warning(
            f"[ALERT][OVERDUE] {patron.name} ({patron.id}) has been in the library "
            f"for {format_duration(elapsed_minutes)}"
        )

        if not self.webhook_url or not recipient:
            return False

        payload = {
            "patronName": patron.name,
            "patronId": patron.id,
            "duration": elapsed_minutes,
            "recipient": recipient,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=payload)
            if response.status_code >= 400:
                logger.warning(f"[ALERT] Webhook returned HTTP {response.status_code} for {patron.id}")
                return False
            logger.info(f"[ALERT] Overdue alert for {patron.id} sent to {recipient}")
            return True
        except httpx.HTTPError as e:
            logger.warning(f"[ALERT] Webhook delivery failed for {patron.id}: {e}")
        except Exception as e:
            logger.error(f"[ALERT] Unexpected failure delivering alert for {patron.id}: {e}", exc_info=True)
        return False


def build_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(settings.NOTIFY_WEBHOOK_URL, settings.NOTIFY_TIMEOUT_SECONDS)
