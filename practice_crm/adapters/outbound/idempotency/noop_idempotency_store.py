"""No-op idempotency store adapter for when deduplication is disabled."""

from typing import Optional

from practice_crm.application.ports.idempotency_store import IdempotencyStore


class NoOpIdempotencyStore(IdempotencyStore):
    """Adapter that lets every delivery through and remembers nothing."""

    async def claim(self, key: str, ttl_seconds: int) -> bool:
        """Always claim."""
        return True

    async def release(self, key: str) -> None:
        pass

    async def get_reply(self, key: str) -> Optional[str]:
        return None

    async def save_reply(self, key: str, reply: str, ttl_seconds: int) -> None:
        pass
