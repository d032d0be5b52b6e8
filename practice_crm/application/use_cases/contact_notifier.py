"""Builds and sends contact notifications."""

from datetime import datetime
from typing import Awaitable, Callable, Optional
from urllib.parse import quote

from practice_crm.application.dtos.notification import NotificationOutcome, SendResult
from practice_crm.application.ports.notification_sender import NotificationSender
from practice_crm.application.use_cases.notification_retry import send_with_retry
from practice_crm.application.use_cases.user_messages_en import (
    DEFAULT_TIME_ZONE,
    UserMessagesEN,
    format_appointment_time,
)
from practice_crm.domain.entities.contact import Contact
from practice_crm.infrastructure.logging.logger import log_notification


class ContactNotifier:
    """Sends templated SMS and email to contacts and the operator.

    Each send goes through send_with_retry; failures are returned as
    NotificationOutcome values, never raised.
    """

    def __init__(
        self,
        sender: NotificationSender,
        admin_email: str = "",
        site_url: str = "",
        display_time_zone: str = DEFAULT_TIME_ZONE,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        """
        Initialize notifier.

        Args:
            sender: Outbound email/SMS port
            admin_email: Operator address for internal alerts
            site_url: Public base URL for the links in emails
            display_time_zone: Zone for times of contacts without their own
            max_attempts: Attempts per message
            base_delay: Initial backoff delay in seconds
            sleep: Optional sleep function for the backoff (tests)
        """
        self._sender = sender
        self._admin_email = admin_email
        self._site_url = site_url.rstrip("/")
        self._display_time_zone = display_time_zone
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep

    async def _deliver(
        self,
        channel: str,
        kind: str,
        send_fn: Callable[[], Awaitable[SendResult]],
        contact_id: Optional[str] = None,
    ) -> NotificationOutcome:
        retry_kwargs = {"max_attempts": self._max_attempts, "base_delay": self._base_delay}
        if self._sleep is not None:
            retry_kwargs["sleep"] = self._sleep
        result, attempts = await send_with_retry(send_fn, **retry_kwargs)
        log_notification(
            channel,
            result.success,
            attempts,
            contact_id=contact_id,
            kind=kind,
            error=result.error,
        )
        return NotificationOutcome.from_result(channel, kind, result)

    async def _sms(self, contact: Contact, kind: str, body: str) -> NotificationOutcome:
        return await self._deliver(
            "sms", kind, lambda: self._sender.send_sms(contact.phone, body), contact.id
        )

    async def _email(
        self, to: str, kind: str, subject: str, html: str, contact_id: Optional[str] = None
    ) -> NotificationOutcome:
        return await self._deliver(
            "email", kind, lambda: self._sender.send_email(to, subject, html), contact_id
        )

    def _format(self, when: datetime, time_zone: Optional[str]) -> tuple[str, str]:
        return format_appointment_time(when, time_zone, default_zone=self._display_time_zone)

    def _link(self, path: str, uuid: str) -> str:
        return f"{self._site_url}/{path}/{quote(uuid, safe='')}"

    async def booking_confirmation(self, contact: Contact) -> list[NotificationOutcome]:
        """
        Send the booking confirmation by SMS (when a phone is known) and email.

        The email carries the contact's cancel and reschedule links. When an
        operator address is configured, the operator is emailed as well.

        Args:
            contact: Contact after the appointment was scheduled

        Returns:
            One outcome per message attempted
        """
        date_text, time_text = self._format(contact.scheduled_appointment_at, contact.time_zone)
        outcomes = []
        if contact.phone:
            body = UserMessagesEN.booking_confirmation_sms(contact.name, date_text, time_text)
            outcomes.append(await self._sms(contact, "booking_confirmation", body))
        subject, html = UserMessagesEN.booking_confirmation_email(
            contact.name,
            date_text,
            time_text,
            cancel_url=self._link("cancel-appointment", contact.uuid),
            reschedule_url=self._link("reschedule", contact.uuid),
        )
        outcomes.append(
            await self._email(contact.email, "booking_confirmation", subject, html, contact.id)
        )
        if self._admin_email:
            subject, html = UserMessagesEN.new_booking_admin_email(
                contact.name,
                contact.email,
                contact.phone,
                date_text,
                time_text,
                admin_url=f"{self._site_url}/admin/appointments",
            )
            outcomes.append(
                await self._email(
                    self._admin_email, "booking_admin_alert", subject, html, contact.id
                )
            )
        return outcomes

    async def cancellation(self, contact: Contact, previous: Contact) -> list[NotificationOutcome]:
        """
        Send the cancellation notice by SMS (when a phone is known) and email.

        Args:
            contact: Contact after cancellation
            previous: Contact before cancellation (for the cancelled time)

        Returns:
            One outcome per channel attempted
        """
        date_text = time_text = None
        if previous.scheduled_appointment_at is not None:
            date_text, time_text = self._format(
                previous.scheduled_appointment_at, previous.time_zone
            )
        outcomes = []
        if contact.phone:
            body = UserMessagesEN.cancellation_sms(contact.name)
            outcomes.append(await self._sms(contact, "cancellation", body))
        subject, html = UserMessagesEN.cancellation_email(contact.name, date_text, time_text)
        outcomes.append(await self._email(contact.email, "cancellation", subject, html, contact.id))
        return outcomes

    async def appointment_reminder(self, contact: Contact, hours: int) -> NotificationOutcome:
        """
        Send an appointment reminder SMS.

        Args:
            contact: Contact with a scheduled appointment and a phone
            hours: Reminder window in hours (24 or 2)

        Returns:
            Outcome of the SMS
        """
        date_text, time_text = self._format(contact.scheduled_appointment_at, contact.time_zone)
        body = UserMessagesEN.reminder_sms(contact.name, hours, date_text, time_text)
        return await self._sms(contact, f"appointment_reminder_{hours}h", body)

    async def questionnaire_nudge(
        self, contact: Contact, prompt: Optional[str]
    ) -> NotificationOutcome:
        """
        Send a follow-up SMS for an unfinished questionnaire.

        Args:
            contact: Contact with a started conversation
            prompt: Prompt of the next unanswered question

        Returns:
            Outcome of the SMS
        """
        body = UserMessagesEN.questionnaire_nudge_sms(contact.name, prompt)
        return await self._sms(contact, "questionnaire_followup", body)

    async def missed_appointment_alert(self, contact: Contact) -> NotificationOutcome:
        """
        Email the operator about a no-show.

        Args:
            contact: Contact whose appointment was missed

        Returns:
            Outcome of the email (failed when no operator address is configured)
        """
        if not self._admin_email:
            return NotificationOutcome(
                channel="email",
                kind="missed_appointment",
                success=False,
                error="ADMIN_EMAIL is not configured",
            )
        date_text, time_text = self._format(contact.scheduled_appointment_at, contact.time_zone)
        subject, html = UserMessagesEN.missed_appointment_admin_email(
            contact.name, contact.email, contact.phone, date_text, time_text
        )
        return await self._email(
            self._admin_email, "missed_appointment", subject, html, contact.id
        )
