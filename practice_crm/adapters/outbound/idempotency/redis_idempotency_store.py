"""Redis idempotency store adapter."""

from typing import Optional

from redis import asyncio as aioredis

from practice_crm.application.ports.idempotency_store import IdempotencyStore


class RedisIdempotencyStore(IdempotencyStore):
    """Redis adapter for idempotency store (SET NX claims with TTL)."""

    KEY_PREFIX = "sms:processed:"
    REPLY_KEY_PREFIX = "sms:reply:"

    def __init__(self, redis_url: str, client: Optional[aioredis.Redis] = None) -> None:
        """
        Initialize Redis idempotency store.

        Args:
            redis_url: Redis connection URL
            client: Optional pre-built client (tests)
        """
        self._redis_url = redis_url
        self._client = client

    async def _get_client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._client

    async def claim(self, key: str, ttl_seconds: int) -> bool:
        """
        Claim a key with SET NX EX.

        Args:
            key: Message SID
            ttl_seconds: Time-to-live in seconds

        Returns:
            True if the key was not yet claimed
        """
        client = await self._get_client()
        claimed = await client.set(f"{self.KEY_PREFIX}{key}", "1", ex=ttl_seconds, nx=True)
        return bool(claimed)

    async def release(self, key: str) -> None:
        """
        Drop the claim so a provider retry is processed again.

        Args:
            key: Message SID
        """
        client = await self._get_client()
        await client.delete(f"{self.KEY_PREFIX}{key}")

    async def get_reply(self, key: str) -> Optional[str]:
        """
        Get stored reply for a key.

        Args:
            key: Message SID

        Returns:
            Stored TwiML, or None if not found
        """
        client = await self._get_client()
        return await client.get(f"{self.REPLY_KEY_PREFIX}{key}")

    async def save_reply(self, key: str, reply: str, ttl_seconds: int) -> None:
        """
        Store the reply for a key.

        Args:
            key: Message SID
            reply: TwiML XML
            ttl_seconds: Time-to-live in seconds
        """
        client = await self._get_client()
        await client.setex(f"{self.REPLY_KEY_PREFIX}{key}", ttl_seconds, reply)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
