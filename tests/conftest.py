"""Shared test fixtures."""

from datetime import datetime, timezone
from typing import Optional

import pytest

from practice_crm.adapters.outbound.contact import InMemoryContactRepository
from practice_crm.application.dtos.notification import SendResult
from practice_crm.application.ports.notification_sender import NotificationSender
from practice_crm.domain.entities.contact import Contact

NOW = datetime(2026, 11, 2, 15, 0, tzinfo=timezone.utc)


class FakeNotificationSender(NotificationSender):
    """Records every send; results can be scripted per channel."""

    def __init__(self) -> None:
        """Initialize fake sender that succeeds by default."""
        self.sms: list[tuple[str, str]] = []
        self.emails: list[tuple[str, str, str]] = []
        self.sms_results: list[SendResult] = []
        self.email_results: list[SendResult] = []

    async def send_sms(self, to: str, body: str) -> SendResult:
        self.sms.append((to, body))
        if self.sms_results:
            return self.sms_results.pop(0)
        return SendResult(success=True, id=f"SM{len(self.sms)}")

    async def send_email(self, to: str, subject: str, html: str) -> SendResult:
        self.emails.append((to, subject, html))
        if self.email_results:
            return self.email_results.pop(0)
        return SendResult(success=True, id=f"email_{len(self.emails)}")


def make_contact(
    contact_id: str = "c1",
    email: Optional[str] = None,
    phone: Optional[str] = "+14045550134",
    **kwargs,
) -> Contact:
    """Build a contact with sensible defaults."""
    return Contact(
        id=contact_id,
        name=kwargs.pop("name", "Jordan Rivera"),
        email=email or f"{contact_id}@example.com",
        phone=phone,
        **kwargs,
    )


@pytest.fixture
def sender():
    """Create fake notification sender."""
    return FakeNotificationSender()


@pytest.fixture
def repository():
    """Create empty in-memory contact repository."""
    return InMemoryContactRepository()
