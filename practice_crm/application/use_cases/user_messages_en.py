"""English user-facing notification messages."""

from datetime import datetime
from html import escape
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIME_ZONE = "America/New_York"


def format_appointment_time(
    when: datetime,
    time_zone: Optional[str] = None,
    default_zone: str = DEFAULT_TIME_ZONE,
) -> tuple[str, str]:
    """
    Format an appointment instant for display.

    Args:
        when: UTC appointment time
        time_zone: IANA zone of the contact
        default_zone: Zone used when the contact has none or it is unknown

    Returns:
        Tuple of (date, time), e.g. ('Monday, November 2, 2026', '10:00 AM EST')
    """
    try:
        zone = ZoneInfo(time_zone or default_zone)
    except (ZoneInfoNotFoundError, ValueError):
        zone = ZoneInfo(default_zone)
    local = when.astimezone(zone)
    date_text = f"{local.strftime('%A, %B')} {local.day}, {local.year}"
    hour = local.hour % 12 or 12
    time_text = f"{hour}:{local.strftime('%M %p')} {local.tzname()}"
    return date_text, time_text


class UserMessagesEN:
    """Centralized English notification templates."""

    PRACTICE_NAME = "Toasted Sesame Therapy"

    @staticmethod
    def booking_confirmation_sms(name: str, date_text: str, time_text: str) -> str:
        """SMS sent after an appointment is scheduled or rescheduled."""
        return (
            f"Hi {name}, your free consultation with {UserMessagesEN.PRACTICE_NAME} is "
            f"confirmed for {date_text} at {time_text}. Reply here if you need to make changes."
        )

    @staticmethod
    def booking_confirmation_email(
        name: str,
        date_text: str,
        time_text: str,
        cancel_url: Optional[str] = None,
        reschedule_url: Optional[str] = None,
    ) -> tuple[str, str]:
        """Subject and HTML body of the booking confirmation email."""
        subject = f"Your consultation is confirmed - {UserMessagesEN.PRACTICE_NAME}"
        links = []
        if reschedule_url:
            links.append(f'<a href="{escape(reschedule_url)}">Reschedule</a>')
        if cancel_url:
            links.append(f'<a href="{escape(cancel_url)}">Cancel appointment</a>')
        html = (
            f"<p>Hi {escape(name)},</p>"
            f"<p>Your free consultation is scheduled for <strong>{date_text}</strong> "
            f"at <strong>{time_text}</strong>.</p>"
            "<p>We look forward to talking with you.</p>"
        )
        if links:
            html += f"<p>Need to make a change? {' | '.join(links)}</p>"
        return subject, html

    @staticmethod
    def new_booking_admin_email(
        name: str,
        email: str,
        phone: Optional[str],
        date_text: str,
        time_text: str,
        admin_url: str,
    ) -> tuple[str, str]:
        """Subject and HTML body of the operator email for a new booking."""
        subject = f"New consultation scheduled - {name}"
        html = (
            f"<p>A new consultation was booked by <strong>{escape(name)}</strong>.</p>"
            f"<p>Email: {escape(email)}<br>Phone: {escape(phone or 'n/a')}<br>"
            f"When: {date_text} at {time_text}</p>"
            f'<p><a href="{escape(admin_url)}">View appointments</a></p>'
        )
        return subject, html

    @staticmethod
    def pull_forward_prompt(today: Optional[str], tomorrow: Optional[str]) -> str:
        """Pull-forward offer naming the earliest open times."""
        today_text = f"at {today}" if today else "(no slots available)"
        tomorrow_text = f"at {tomorrow}" if tomorrow else "(no slots available)"
        return (
            "I can get you in sooner if that helps. Here's what's open:\n"
            f"1 = Today {today_text}\n2 = Tomorrow {tomorrow_text}\n3 = Keep current time"
        )

    @staticmethod
    def pull_forward_moved(display_time: str) -> str:
        """Reply after an appointment was moved to an earlier slot."""
        return f"You're moved to {display_time}. Calendar updated."

    @staticmethod
    def cancellation_sms(name: str) -> str:
        """SMS sent after an appointment is cancelled."""
        return (
            f"Hi {name}, your consultation with {UserMessagesEN.PRACTICE_NAME} has been "
            "cancelled. Reply here any time if you would like to book a new time."
        )

    @staticmethod
    def cancellation_email(
        name: str, date_text: Optional[str], time_text: Optional[str]
    ) -> tuple[str, str]:
        """Subject and HTML body of the cancellation email."""
        subject = f"Your consultation has been cancelled - {UserMessagesEN.PRACTICE_NAME}"
        when = f" on {date_text} at {time_text}" if date_text and time_text else ""
        html = (
            f"<p>Hi {escape(name)},</p>"
            f"<p>Your consultation{when} has been cancelled.</p>"
            "<p>If you would like to book a new time, just reply to this email.</p>"
        )
        return subject, html

    @staticmethod
    def reminder_sms(name: str, hours: int, date_text: str, time_text: str) -> str:
        """Appointment reminder SMS for the 24h and 2h windows."""
        if hours <= 2:
            lead = "Your consultation starts soon"
        else:
            lead = "Reminder: your consultation is tomorrow"
        return (
            f"Hi {name}! {lead}: {date_text} at {time_text} "
            f"with {UserMessagesEN.PRACTICE_NAME}. Reply here if you need to reschedule."
        )

    @staticmethod
    def questionnaire_nudge_sms(name: str, prompt: Optional[str]) -> str:
        """Follow-up SMS for a questionnaire left unfinished."""
        text = f"Hi {name}, just checking in! We'd love to finish getting to know you."
        if prompt:
            text = f"{text}\n\n{prompt}"
        return text

    @staticmethod
    def missed_appointment_admin_email(
        name: str, email: str, phone: Optional[str], date_text: str, time_text: str
    ) -> tuple[str, str]:
        """Subject and HTML body of the operator email for a no-show."""
        subject = f"Missed appointment - {name}"
        html = (
            f"<p><strong>{escape(name)}</strong> did not attend the consultation "
            f"scheduled for {date_text} at {time_text}.</p>"
            f"<p>Email: {escape(email)}<br>Phone: {escape(phone or 'n/a')}</p>"
            "<p>The appointment was marked as no-show.</p>"
        )
        return subject, html

    UNKNOWN_SENDER_REPLY = (
        "Thanks for your message! We couldn't find your booking. "
        "Please book a consultation on our website and we'll be in touch."
    )
    DUPLICATE_DELIVERY_REPLY = "Message received. We'll get back to you shortly."
    FLOW_COMPLETE_REPLY = "Thanks! We have everything we need and will be in touch soon."
