"""Notification DTOs."""

from typing import Optional

from practice_crm.application.dtos.base import DTO


class SendResult(DTO):
    """Result of a single email or SMS send."""

    success: bool
    id: Optional[str] = None  # provider message id (Resend id / Twilio sid)
    error: Optional[str] = None
    retryable: bool = False


class NotificationOutcome(DTO):
    """Outcome of a notification attached to a committed change."""

    channel: str  # "sms" or "email"
    kind: str  # e.g. "booking_confirmation", "cancellation"
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_result(cls, channel: str, kind: str, result: SendResult) -> "NotificationOutcome":
        """Build an outcome from a sender result."""
        return cls(
            channel=channel,
            kind=kind,
            success=result.success,
            message_id=result.id,
            error=result.error,
        )
