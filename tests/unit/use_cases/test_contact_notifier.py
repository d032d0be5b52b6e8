"""Unit tests for ContactNotifier."""

from datetime import timedelta

import pytest
from conftest import NOW, make_contact

from practice_crm.application.dtos.notification import SendResult
from practice_crm.application.use_cases.contact_notifier import ContactNotifier
from practice_crm.application.use_cases.user_messages_en import format_appointment_time
from practice_crm.domain.entities.contact import AppointmentStatus


class NoSleep:
    """Records backoff delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def test_format_appointment_time_uses_contact_zone():
    """Test display time follows the contact's zone."""
    assert format_appointment_time(NOW, "America/Los_Angeles") == (
        "Monday, November 2, 2026",
        "7:00 AM PST",
    )


def test_format_appointment_time_falls_back_to_eastern():
    """Test unknown zones fall back to Eastern time."""
    assert format_appointment_time(NOW, "Mars/Olympus") == (
        "Monday, November 2, 2026",
        "10:00 AM EST",
    )


@pytest.mark.asyncio
async def test_booking_confirmation_without_phone_sends_email_only(sender):
    """Test the SMS is skipped when no phone is known."""
    notifier = ContactNotifier(sender)
    contact = make_contact(
        "c1",
        phone=None,
        scheduled_appointment_at=NOW,
        appointment_status=AppointmentStatus.SCHEDULED,
    )

    outcomes = await notifier.booking_confirmation(contact)

    assert [o.channel for o in outcomes] == ["email"]
    assert sender.emails[0][0] == "c1@example.com"
    assert "Jordan Rivera" in sender.emails[0][2]


@pytest.mark.asyncio
async def test_retryable_failure_is_retried(sender):
    """Test sends are retried with backoff."""
    sleep = NoSleep()
    notifier = ContactNotifier(sender, max_attempts=3, base_delay=1.0, sleep=sleep)
    sender.sms_results.append(SendResult(success=False, error="busy", retryable=True))
    contact = make_contact(
        "c1",
        scheduled_appointment_at=NOW + timedelta(hours=20),
        appointment_status=AppointmentStatus.SCHEDULED,
    )

    outcome = await notifier.appointment_reminder(contact, 24)

    assert outcome.success
    assert outcome.kind == "appointment_reminder_24h"
    assert len(sender.sms) == 2
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_missed_appointment_alert_needs_admin_email(sender):
    """Test no email is attempted without an operator address."""
    notifier = ContactNotifier(sender, admin_email="")
    contact = make_contact("c1", scheduled_appointment_at=NOW)

    outcome = await notifier.missed_appointment_alert(contact)

    assert not outcome.success
    assert sender.emails == []


@pytest.mark.asyncio
async def test_missed_appointment_alert_goes_to_operator(sender):
    """Test the alert names the contact."""
    notifier = ContactNotifier(sender, admin_email="admin@example.com")
    contact = make_contact("c1", scheduled_appointment_at=NOW)

    outcome = await notifier.missed_appointment_alert(contact)

    assert outcome.success
    to, subject, html = sender.emails[0]
    assert to == "admin@example.com"
    assert subject == "Missed appointment - Jordan Rivera"
    assert "c1@example.com" in html


def test_format_appointment_time_uses_configured_default_zone():
    """Test contacts without a zone are shown in the configured display zone."""
    assert format_appointment_time(NOW, None, default_zone="America/Chicago") == (
        "Monday, November 2, 2026",
        "9:00 AM CST",
    )


@pytest.mark.asyncio
async def test_booking_email_links_and_display_zone(sender):
    """Test the confirmation carries uuid links and the configured zone."""
    notifier = ContactNotifier(
        sender,
        site_url="https://practice.example.com/",
        display_time_zone="America/Chicago",
    )
    contact = make_contact(
        "c1",
        uuid="3f1c a/b",
        scheduled_appointment_at=NOW,
        appointment_status=AppointmentStatus.SCHEDULED,
    )

    outcomes = await notifier.booking_confirmation(contact)

    html = sender.emails[0][2]
    assert [o.kind for o in outcomes] == ["booking_confirmation", "booking_confirmation"]
    assert "https://practice.example.com/cancel-appointment/3f1c%20a%2Fb" in html
    assert "https://practice.example.com/reschedule/3f1c%20a%2Fb" in html
    assert "9:00 AM CST" in html
    assert "9:00 AM CST" in sender.sms[0][1]


@pytest.mark.asyncio
async def test_booking_alerts_operator_when_configured(sender):
    """Test the operator is told about each new booking."""
    notifier = ContactNotifier(
        sender, admin_email="admin@example.com", site_url="https://practice.example.com"
    )
    contact = make_contact(
        "c1",
        scheduled_appointment_at=NOW,
        appointment_status=AppointmentStatus.SCHEDULED,
        time_zone="America/New_York",
    )

    outcomes = await notifier.booking_confirmation(contact)

    assert outcomes[-1].kind == "booking_admin_alert"
    to, subject, html = sender.emails[-1]
    assert to == "admin@example.com"
    assert subject == "New consultation scheduled - Jordan Rivera"
    assert "c1@example.com" in html
    assert "+14045550134" in html
    assert "Monday, November 2, 2026 at 10:00 AM EST" in html
    assert "https://practice.example.com/admin/appointments" in html
