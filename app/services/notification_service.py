"""Out-of-band e-mail notification for new chat messages, sent through Resend."""
import asyncio
import html
import logging
from typing import Optional

import resend

from app.config.settings import settings
from app.core.metrics import NOTIFICATIONS_TOTAL
from app.models.schemas import ParticipantProfile

logger = logging.getLogger(__name__)


def truncate_preview(content: str, limit: Optional[int] = None) -> str:
    limit = limit or settings.EMAIL_PREVIEW_LENGTH
    content = " ".join(content.split())
    if len(content) <= limit:
        return content
    return content[: max(limit - 3, 0)].rstrip() + "..."


class NotificationService:
    """Best-effort new-message e-mail. ``notify`` never raises."""

    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None, client_url: Optional[str] = None) -> None:
        self._api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self._sender = sender or settings.EMAIL_FROM
        self._client_url = (client_url or settings.CLIENT_URL).rstrip("/")
        if not self._api_key:
            logger.warning("RESEND_API_KEY not configured - message notifications will be logged but not sent")

    def _render(self, recipient_name: str, sender_display_name: str, message_preview: str, conversation_id: int) -> str:
        link = f"{self._client_url}/messages/{conversation_id}"
        return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2>New message from {html.escape(sender_display_name)}</h2>
          <p>Hi {html.escape(recipient_name)},</p>
          <p>You have a new message on BroughtBy:</p>
          <blockquote style="border-left: 3px solid #6366F1; padding-left: 12px; color: #374151;">
            {html.escape(message_preview)}
          </blockquote>
          <p><a href="{html.escape(link)}">Open the conversation</a></p>
        </div>
        """

    def _send(self, params: dict) -> str:
        resend.api_key = self._api_key
        result = resend.Emails.send(params)
        return result.get("id", "") if isinstance(result, dict) else getattr(result, "id", "")

    async def notify(
        self,
        recipient: ParticipantProfile,
        sender_display_name: str,
        message_preview: str,
        conversation_id: int,
    ) -> None:
        if not recipient.email:
            logger.info("Skipping notification for user %s without an e-mail address", recipient.id)
            NOTIFICATIONS_TOTAL.labels(outcome="skipped").inc()
            return

        if not self._api_key:
            logger.info(
                "Email not sent (RESEND_API_KEY not configured)",
                extra={"to": recipient.email, "match_id": conversation_id},
            )
            NOTIFICATIONS_TOTAL.labels(outcome="skipped").inc()
            return

        params = {
            "from": self._sender,
            "to": [recipient.email],
            "subject": f"New message from {sender_display_name}",
            "html": self._render(recipient.name, sender_display_name, truncate_preview(message_preview), conversation_id),
        }
        try:
            email_id = await asyncio.to_thread(self._send, params)
        except Exception:
            logger.warning(
                "Error sending message notification",
                extra={"to": recipient.email, "match_id": conversation_id},
                exc_info=True,
            )
            NOTIFICATIONS_TOTAL.labels(outcome="failed").inc()
            return

        NOTIFICATIONS_TOTAL.labels(outcome="sent").inc()
        logger.info("Message notification sent", extra={"email_id": email_id, "match_id": conversation_id})


_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
