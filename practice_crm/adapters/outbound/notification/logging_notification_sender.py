"""Notification sender that only logs (delivery disabled)."""

from uuid import uuid4

from practice_crm.application.dtos.notification import SendResult
from practice_crm.application.ports.notification_sender import NotificationSender
from practice_crm.infrastructure.logging.logger import log_event


class LoggingNotificationSender(NotificationSender):
    """Logs outbound messages instead of delivering them."""

    async def send_email(self, to: str, subject: str, html: str) -> SendResult:
        log_event("notification", channel="email", delivered=False, to=to, subject=subject)
        return SendResult(success=True, id=f"logged-{uuid4()}")

    async def send_sms(self, to: str, body: str) -> SendResult:
        log_event("notification", channel="sms", delivered=False, to=to, body_length=len(body))
        return SendResult(success=True, id=f"logged-{uuid4()}")
