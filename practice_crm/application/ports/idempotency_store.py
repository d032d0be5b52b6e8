"""Idempotency store port for inbound webhook deduplication."""

from abc import ABC, abstractmethod
from typing import Optional


class IdempotencyStore(ABC):
    """Port interface for idempotency store.

    Keys are provider delivery ids (Twilio MessageSid). A key is claimed
    before processing and released again if processing fails, so a provider
    retry is handled once.
    """

    @abstractmethod
    async def claim(self, key: str, ttl_seconds: int) -> bool:
        """
        Atomically claim a key for processing.

        Args:
            key: Provider delivery id
            ttl_seconds: How long the claim is remembered

        Returns:
            True if this caller claimed the key, False if it was already claimed
        """
        pass

    @abstractmethod
    async def release(self, key: str) -> None:
        """
        Release a claim after failed processing.

        Args:
            key: Provider delivery id
        """
        pass

    @abstractmethod
    async def get_reply(self, key: str) -> Optional[str]:
        """
        Get the reply stored for a processed key.

        Args:
            key: Provider delivery id

        Returns:
            Stored reply body, or None if not found
        """
        pass

    @abstractmethod
    async def save_reply(self, key: str, reply: str, ttl_seconds: int) -> None:
        """
        Store the reply for a processed key.

        Args:
            key: Provider delivery id
            reply: Reply body (TwiML XML)
            ttl_seconds: Time-to-live in seconds
        """
        pass
