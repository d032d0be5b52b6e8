"""Contact repository adapters."""

from practice_crm.adapters.outbound.contact.in_memory_contact_repository import (
    InMemoryContactRepository,
)
from practice_crm.adapters.outbound.contact.postgres_contact_repository import (
    PostgresContactRepository,
)

__all__ = [
    "InMemoryContactRepository",
    "PostgresContactRepository",
]
