"""Notification sender adapters."""

from practice_crm.adapters.outbound.notification.http_notification_sender import (
    HttpNotificationSender,
)
from practice_crm.adapters.outbound.notification.logging_notification_sender import (
    LoggingNotificationSender,
)

__all__ = [
    "HttpNotificationSender",
    "LoggingNotificationSender",
]
