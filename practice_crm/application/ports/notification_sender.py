"""Notification sender port."""

from abc import ABC, abstractmethod

from practice_crm.application.dtos.notification import SendResult


class NotificationSender(ABC):
    """Port interface for outbound email and SMS.

    Implementations report failures in the returned SendResult instead of
    raising, so callers can decide whether to retry.
    """

    @abstractmethod
    async def send_email(self, to: str, subject: str, html: str) -> SendResult:
        """
        Send an email.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body

        Returns:
            SendResult with the provider message id on success
        """
        pass

    @abstractmethod
    async def send_sms(self, to: str, body: str) -> SendResult:
        """
        Send an SMS.

        Args:
            to: Recipient phone number
            body: Message text

        Returns:
            SendResult with the provider message sid on success
        """
        pass
