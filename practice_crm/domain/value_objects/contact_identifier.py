"""Contact identifier value object."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from practice_crm.domain.errors import InvalidInputError


class IdentifierKind(str, Enum):
    """Which contact column an identifier refers to."""

    ID = "id"
    UUID = "uuid"


@dataclass(frozen=True)
class ContactIdentifier:
    """Tagged reference to a contact, either by primary key or by public uuid."""

    kind: IdentifierKind
    value: str

    def __post_init__(self) -> None:
        """Validate identifier value."""
        if not self.value or not self.value.strip():
            raise InvalidInputError("Contact identifier must not be empty")

    @classmethod
    def by_id(cls, value: str) -> "ContactIdentifier":
        """Reference a contact by primary key."""
        return cls(IdentifierKind.ID, str(value).strip())

    @classmethod
    def by_uuid(cls, value: str) -> "ContactIdentifier":
        """Reference a contact by public uuid."""
        return cls(IdentifierKind.UUID, str(value).strip())

    @classmethod
    def parse(cls, raw: str) -> "ContactIdentifier":
        """
        Resolve an untagged identifier string.

        Identifiers containing a hyphen are uuids, anything else is a primary key.

        Args:
            raw: Identifier as received from a legacy caller

        Returns:
            ContactIdentifier
        """
        text = str(raw).strip() if raw is not None else ""
        if "-" in text:
            return cls.by_uuid(text)
        return cls.by_id(text)

    @classmethod
    def from_request(
        cls, contact_id: Optional[str] = None, uuid: Optional[str] = None
    ) -> "ContactIdentifier":
        """
        Build an identifier from request fields.

        An explicit uuid wins; a bare contact id goes through parse().

        Args:
            contact_id: Untagged identifier
            uuid: Explicit public uuid

        Returns:
            ContactIdentifier

        Raises:
            InvalidInputError: If neither field is provided
        """
        if uuid:
            return cls.by_uuid(uuid)
        if contact_id:
            return cls.parse(contact_id)
        raise InvalidInputError("Contact ID or UUID is required")

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.value}"
