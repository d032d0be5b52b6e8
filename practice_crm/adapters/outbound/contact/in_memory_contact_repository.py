"""In-memory contact repository adapter."""

import copy
import dataclasses
from datetime import datetime, timezone
from typing import Any, Optional

from practice_crm.application.ports.contact_repository import (
    ORDER_BY_LAST_RESPONSE,
    ContactQuery,
    ContactRepository,
    check_update_fields,
)
from practice_crm.domain.entities.contact import Contact
from practice_crm.domain.errors import ConflictError, NotFoundError
from practice_crm.domain.value_objects.contact_identifier import (
    ContactIdentifier,
    IdentifierKind,
)
from practice_crm.domain.value_objects.email_address import normalize_email
from practice_crm.domain.value_objects.phone_number import to_e164

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


class InMemoryContactRepository(ContactRepository):
    """In-memory implementation of the contact store.

    Contacts are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self, contacts: Optional[list[Contact]] = None) -> None:
        """
        Initialize in-memory repository.

        Args:
            contacts: Optional contacts to seed the store with
        """
        self._storage: dict[str, Contact] = {}
        for contact in contacts or []:
            self._storage[contact.id] = copy.deepcopy(contact)

    def _find(self, identifier: ContactIdentifier) -> Optional[Contact]:
        if identifier.kind == IdentifierKind.ID:
            return self._storage.get(identifier.value)
        for contact in self._storage.values():
            if contact.uuid == identifier.value:
                return contact
        return None

    async def get(self, identifier: ContactIdentifier) -> Contact:
        """
        Get a contact by id or uuid.

        Args:
            identifier: Contact identifier

        Returns:
            Contact entity

        Raises:
            NotFoundError: If no contact matches
        """
        contact = self._find(identifier)
        if contact is None:
            raise NotFoundError("Contact not found")
        return copy.deepcopy(contact)

    async def get_by_email(self, email: str) -> Optional[Contact]:
        """
        Get a contact by email.

        Args:
            email: Email address

        Returns:
            Contact entity, or None if not found
        """
        wanted = normalize_email(email)
        for contact in self._storage.values():
            if contact.email == wanted:
                return copy.deepcopy(contact)
        return None

    async def get_by_phone(self, phone: str) -> Optional[Contact]:
        """
        Get the most recently updated contact with a phone number.

        Args:
            phone: Phone number in any accepted format

        Returns:
            Contact entity, or None if not found
        """
        wanted = to_e164(phone)
        matches = [
            contact
            for contact in self._storage.values()
            if contact.phone and to_e164(contact.phone) == wanted
        ]
        if not matches:
            return None
        return copy.deepcopy(max(matches, key=lambda contact: contact.updated_at))

    async def insert(self, contact: Contact) -> Contact:
        """
        Insert a new contact.

        Args:
            contact: Contact to insert

        Returns:
            Stored contact

        Raises:
            ConflictError: If the id, uuid or email is already taken
        """
        contact.check_invariants()
        email = normalize_email(contact.email)
        for existing in self._storage.values():
            if existing.id == contact.id or existing.uuid == contact.uuid:
                raise ConflictError("Contact already exists")
            if existing.email == email:
                raise ConflictError("A contact with this email already exists")
        stored = dataclasses.replace(
            copy.deepcopy(contact),
            email=email,
            phone=to_e164(contact.phone) if contact.phone else None,
        )
        self._storage[stored.id] = stored
        return copy.deepcopy(stored)

    async def update(
        self,
        identifier: ContactIdentifier,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Contact:
        """
        Apply a partial update.

        Args:
            identifier: Contact identifier
            fields: Field name to new value
            expected_version: Version the caller read, if compare-and-swap is wanted

        Returns:
            Updated contact

        Raises:
            NotFoundError: If no contact matches
            ConflictError: On version mismatch or duplicate email
        """
        changes = check_update_fields(fields)
        current = self._find(identifier)
        if current is None:
            raise NotFoundError("Contact not found")
        if expected_version is not None and current.version != expected_version:
            raise ConflictError("Contact was modified concurrently")
        if "email" in changes:
            for other in self._storage.values():
                if other.id != current.id and other.email == changes["email"]:
                    raise ConflictError("A contact with this email already exists")

        updated = dataclasses.replace(
            copy.deepcopy(current),
            **copy.deepcopy(changes),
            version=current.version + 1,
        )
        updated.touch()
        updated.check_invariants()
        self._storage[updated.id] = updated
        return copy.deepcopy(updated)

    async def query(self, contact_query: ContactQuery) -> list[Contact]:
        """
        Query contacts.

        Args:
            contact_query: Filter, ordering, offset and limit

        Returns:
            Matching contacts in the requested order
        """
        matches = [
            contact for contact in self._storage.values() if contact_query.matches(contact)
        ]
        if contact_query.order_by == ORDER_BY_LAST_RESPONSE:
            matches.sort(
                key=lambda contact: (contact.latest_response_at() or _FAR_FUTURE, contact.id)
            )
        else:
            matches.sort(
                key=lambda contact: (contact.scheduled_appointment_at or _FAR_FUTURE, contact.id)
            )
        matches = matches[contact_query.offset :]
        if contact_query.limit is not None:
            matches = matches[: contact_query.limit]
        return [copy.deepcopy(contact) for contact in matches]
