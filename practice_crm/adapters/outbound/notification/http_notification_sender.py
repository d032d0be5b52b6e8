"""Twilio (SMS) and Resend (email) notification sender over HTTP."""

from typing import Optional

import httpx

from practice_crm.application.dtos.notification import SendResult
from practice_crm.application.ports.notification_sender import NotificationSender
from practice_crm.domain.value_objects.phone_number import to_e164
from practice_crm.infrastructure.logging.logger import logger

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
RESEND_API_URL = "https://api.resend.com/emails"

RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


def _error_result(response: httpx.Response, provider: str) -> SendResult:
    """
    Build a failed SendResult from a provider error response.

    Args:
        response: Non-2xx provider response
        provider: Provider name for the error text

    Returns:
        SendResult marked retryable for 429 and 5xx
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None
    detail = response.text
    if isinstance(payload, dict):
        detail = payload.get("message") or payload.get("error") or response.text
    return SendResult(
        success=False,
        error=f"{provider} error {response.status_code}: {detail}",
        retryable=response.status_code in RETRYABLE_STATUSES,
    )


def _message_id(response: httpx.Response, key: str) -> Optional[str]:
    """Provider message id from an accepted response; the send stands without it."""
    try:
        payload = response.json()
    except ValueError:
        logger.warning(f"Accepted response without a JSON body: {response.text[:200]}")
        return None
    return payload.get(key) if isinstance(payload, dict) else None


class HttpNotificationSender(NotificationSender):
    """Sends SMS through the Twilio Messages API and email through Resend."""

    def __init__(
        self,
        twilio_account_sid: str,
        twilio_auth_token: str,
        twilio_phone_number: str,
        resend_api_key: str,
        email_from: str,
        timeout_seconds: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize HTTP notification sender.

        Args:
            twilio_account_sid: Twilio account SID
            twilio_auth_token: Twilio auth token
            twilio_phone_number: Sending phone number
            resend_api_key: Resend API key
            email_from: From header for emails
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._twilio_account_sid = twilio_account_sid
        self._twilio_auth_token = twilio_auth_token
        self._twilio_phone_number = twilio_phone_number
        self._resend_api_key = resend_api_key
        self._email_from = email_from
        self._timeout = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def send_sms(self, to: str, body: str) -> SendResult:
        """
        Send an SMS through Twilio.

        Args:
            to: Recipient phone number
            body: Message text

        Returns:
            SendResult with the Twilio message sid
        """
        if not (self._twilio_account_sid and self._twilio_auth_token and self._twilio_phone_number):
            return SendResult(success=False, error="Twilio is not configured")
        if not to:
            return SendResult(success=False, error="No phone number provided")

        url = f"{TWILIO_API_BASE}/Accounts/{self._twilio_account_sid}/Messages.json"
        data = {"To": to_e164(to), "From": self._twilio_phone_number, "Body": body}
        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    data=data,
                    auth=(self._twilio_account_sid, self._twilio_auth_token),
                )
        except httpx.RequestError as e:
            logger.warning(f"Twilio request failed: {str(e)}")
            return SendResult(success=False, error=f"Twilio request failed: {str(e)}", retryable=True)

        if response.status_code in (200, 201):
            return SendResult(success=True, id=_message_id(response, "sid"))
        return _error_result(response, "Twilio")

    async def send_email(self, to: str, subject: str, html: str) -> SendResult:
        """
        Send an email through Resend.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body

        Returns:
            SendResult with the Resend email id
        """
        if not self._resend_api_key:
            return SendResult(success=False, error="Resend is not configured")
        if not to:
            return SendResult(success=False, error="No email address provided")

        payload = {"from": self._email_from, "to": [to], "subject": subject, "html": html}
        headers = {"Authorization": f"Bearer {self._resend_api_key}"}
        try:
            async with self._client() as client:
                response = await client.post(RESEND_API_URL, json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.warning(f"Resend request failed: {str(e)}")
            return SendResult(success=False, error=f"Resend request failed: {str(e)}", retryable=True)

        if response.status_code in (200, 201):
            return SendResult(success=True, id=_message_id(response, "id"))
        return _error_result(response, "Resend")
