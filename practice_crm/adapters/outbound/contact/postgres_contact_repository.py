"""Postgres-backed contact repository adapter."""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.exc import StaleDataError

from practice_crm.application.ports.contact_repository import (
    ORDER_BY_LAST_RESPONSE,
    ContactQuery,
    ContactRepository,
    check_update_fields,
)
from practice_crm.domain.entities.contact import AppointmentStatus, Contact, ContactStatus
from practice_crm.domain.entities.conversation_response import ConversationResponse
from practice_crm.domain.errors import ConflictError, NotFoundError, StorageError
from practice_crm.domain.value_objects.contact_identifier import (
    ContactIdentifier,
    IdentifierKind,
)
from practice_crm.domain.value_objects.email_address import normalize_email
from practice_crm.domain.value_objects.phone_number import to_e164
from practice_crm.infrastructure.db import get_db_session
from practice_crm.infrastructure.logging.logger import logger

from .models import ContactModel


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware (SQLite returns naive datetimes)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_timestamp(raw: str) -> datetime:
    return _aware(datetime.fromisoformat(raw.replace("Z", "+00:00")))


class PostgresContactRepository(ContactRepository):
    """Postgres implementation of the contact store."""

    def _model_to_entity(self, model: ContactModel) -> Contact:
        """
        Convert ContactModel to Contact entity.

        Args:
            model: SQLAlchemy model instance

        Returns:
            Contact entity
        """
        responses = {
            question_id: ConversationResponse.from_dict(question_id, data)
            for question_id, data in (model.conversation_responses or {}).items()
        }
        markers = {
            rule: _parse_timestamp(raw) for rule, raw in (model.workflow_markers or {}).items()
        }
        return Contact(
            id=model.id,
            uuid=model.uuid,
            name=model.name,
            email=model.email,
            phone=model.phone,
            contact_status=ContactStatus(model.contact_status),
            scheduled_appointment_at=_aware(model.scheduled_appointment_at),
            time_zone=model.time_zone,
            appointment_status=(
                AppointmentStatus(model.appointment_status) if model.appointment_status else None
            ),
            appointment_notes=model.appointment_notes,
            last_appointment_update=_aware(model.last_appointment_update),
            last_auto_reminder_sent=_aware(model.last_auto_reminder_sent),
            auto_reminder_count=model.auto_reminder_count or 0,
            workflow_markers=markers,
            conversation_responses=responses,
            conversation_complete=bool(model.conversation_complete),
            custom_fields=dict(model.custom_fields or {}),
            crm_notes=model.crm_notes,
            version=model.version,
            created_at=_aware(model.created_at),
            updated_at=_aware(model.updated_at),
        )

    def _column_value(self, name: str, value: Any) -> Any:
        """
        Convert an entity field value to its column representation.

        Args:
            name: Field name
            value: Entity value

        Returns:
            Value to assign on the model
        """
        if name in ("contact_status", "appointment_status") and value is not None:
            return value.value if hasattr(value, "value") else str(value)
        if name == "phone" and value:
            return to_e164(value)
        if name == "workflow_markers":
            return {rule: at.isoformat() for rule, at in (value or {}).items()}
        if name == "conversation_responses":
            return {
                question_id: response.to_dict() for question_id, response in (value or {}).items()
            }
        if name == "custom_fields":
            return dict(value or {})
        return value

    def _assign(self, model: ContactModel, name: str, value: Any) -> None:
        setattr(model, name, self._column_value(name, value))
        if name == "conversation_responses":
            answered = [response.timestamp for response in (value or {}).values()]
            model.last_response_at = max(answered) if answered else None

    def _filter_identifier(self, db: Session, identifier: ContactIdentifier) -> Query:
        column = ContactModel.id if identifier.kind == IdentifierKind.ID else ContactModel.uuid
        return db.query(ContactModel).filter(column == identifier.value)

    async def get(self, identifier: ContactIdentifier) -> Contact:
        """
        Get a contact by id or uuid.

        Args:
            identifier: Contact identifier

        Returns:
            Contact entity

        Raises:
            NotFoundError: If no contact matches
            StorageError: On database failure
        """
        db: Session = get_db_session()
        try:
            model = self._filter_identifier(db, identifier).first()
            if model is None:
                raise NotFoundError("Contact not found")
            return self._model_to_entity(model)
        except SQLAlchemyError as e:
            logger.error(f"Database error while getting contact {identifier}: {str(e)}")
            raise StorageError("Failed to read contact") from e
        finally:
            db.close()

    async def get_by_email(self, email: str) -> Optional[Contact]:
        """
        Get a contact by email.

        Args:
            email: Email address

        Returns:
            Contact entity, or None if not found
        """
        db: Session = get_db_session()
        try:
            model = (
                db.query(ContactModel)
                .filter(ContactModel.email == normalize_email(email))
                .first()
            )
            return self._model_to_entity(model) if model else None
        except SQLAlchemyError as e:
            logger.error(f"Database error while looking up contact by email: {str(e)}")
            raise StorageError("Failed to read contact") from e
        finally:
            db.close()

    async def get_by_phone(self, phone: str) -> Optional[Contact]:
        """
        Get the most recently updated contact with a phone number.

        Args:
            phone: Phone number in any accepted format

        Returns:
            Contact entity, or None if not found
        """
        db: Session = get_db_session()
        try:
            model = (
                db.query(ContactModel)
                .filter(ContactModel.phone == to_e164(phone))
                .order_by(ContactModel.updated_at.desc())
                .first()
            )
            return self._model_to_entity(model) if model else None
        except SQLAlchemyError as e:
            logger.error(f"Database error while looking up contact by phone: {str(e)}")
            raise StorageError("Failed to read contact") from e
        finally:
            db.close()

    async def insert(self, contact: Contact) -> Contact:
        """
        Insert a new contact.

        Args:
            contact: Contact to insert

        Returns:
            Stored contact

        Raises:
            ConflictError: If the id, uuid or email is already taken
            StorageError: On database failure
        """
        contact.check_invariants()
        model = ContactModel(id=contact.id, uuid=contact.uuid)
        fields = {
            "name": contact.name,
            "email": normalize_email(contact.email),
            "phone": contact.phone,
            "contact_status": contact.contact_status,
            "scheduled_appointment_at": contact.scheduled_appointment_at,
            "time_zone": contact.time_zone,
            "appointment_status": contact.appointment_status,
            "appointment_notes": contact.appointment_notes,
            "last_appointment_update": contact.last_appointment_update,
            "last_auto_reminder_sent": contact.last_auto_reminder_sent,
            "auto_reminder_count": contact.auto_reminder_count,
            "workflow_markers": contact.workflow_markers,
            "conversation_responses": contact.conversation_responses,
            "conversation_complete": contact.conversation_complete,
            "custom_fields": contact.custom_fields,
            "crm_notes": contact.crm_notes,
            "created_at": contact.created_at,
            "updated_at": contact.updated_at,
        }
        for name, value in fields.items():
            self._assign(model, name, value)

        db: Session = get_db_session()
        try:
            db.add(model)
            db.commit()
            db.refresh(model)
            return self._model_to_entity(model)
        except IntegrityError as e:
            db.rollback()
            raise ConflictError("A contact with this email already exists") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error while inserting contact {contact.id}: {str(e)}")
            raise StorageError("Failed to save contact") from e
        finally:
            db.close()

    async def update(
        self,
        identifier: ContactIdentifier,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Contact:
        """
        Apply a partial update as a single-row compare-and-swap.

        Args:
            identifier: Contact identifier
            fields: Field name to new value
            expected_version: Version the caller read, if compare-and-swap is wanted

        Returns:
            Updated contact

        Raises:
            NotFoundError: If no contact matches
            ConflictError: On version mismatch or duplicate email
            StorageError: On database failure
        """
        changes = check_update_fields(fields)
        db: Session = get_db_session()
        try:
            model = self._filter_identifier(db, identifier).first()
            if model is None:
                raise NotFoundError("Contact not found")
            if expected_version is not None and model.version != expected_version:
                raise ConflictError("Contact was modified concurrently")

            for name, value in changes.items():
                self._assign(model, name, value)
            model.updated_at = datetime.now(timezone.utc)
            self._model_to_entity(model).check_invariants()

            db.commit()
            db.refresh(model)
            return self._model_to_entity(model)
        except StaleDataError as e:
            db.rollback()
            raise ConflictError("Contact was modified concurrently") from e
        except IntegrityError as e:
            db.rollback()
            raise ConflictError("A contact with this email already exists") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error while updating contact {identifier}: {str(e)}")
            raise StorageError("Failed to update contact") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def query(self, contact_query: ContactQuery) -> list[Contact]:
        """
        Query contacts.

        Args:
            contact_query: Filter, ordering, offset and limit

        Returns:
            Matching contacts in the requested order
        """
        db: Session = get_db_session()
        try:
            query = db.query(ContactModel)
            if contact_query.appointment_status is not None:
                query = query.filter(
                    ContactModel.appointment_status == contact_query.appointment_status.value
                )
            if contact_query.scheduled_from is not None:
                query = query.filter(
                    ContactModel.scheduled_appointment_at >= contact_query.scheduled_from
                )
            if contact_query.scheduled_until is not None:
                query = query.filter(
                    ContactModel.scheduled_appointment_at <= contact_query.scheduled_until
                )
            if contact_query.has_appointment is True:
                query = query.filter(ContactModel.appointment_status.isnot(None))
            elif contact_query.has_appointment is False:
                query = query.filter(ContactModel.appointment_status.is_(None))
            if contact_query.has_phone is True:
                query = query.filter(ContactModel.phone.isnot(None), ContactModel.phone != "")
            elif contact_query.has_phone is False:
                query = query.filter(or_(ContactModel.phone.is_(None), ContactModel.phone == ""))
            if contact_query.has_conversation is True:
                query = query.filter(ContactModel.last_response_at.isnot(None))
            elif contact_query.has_conversation is False:
                query = query.filter(ContactModel.last_response_at.is_(None))
            if contact_query.conversation_complete is not None:
                query = query.filter(
                    ContactModel.conversation_complete.is_(contact_query.conversation_complete)
                )
            if contact_query.last_response_before is not None:
                query = query.filter(
                    ContactModel.last_response_at <= contact_query.last_response_before
                )

            if contact_query.order_by == ORDER_BY_LAST_RESPONSE:
                query = query.order_by(
                    ContactModel.last_response_at.asc().nulls_last(),
                    ContactModel.id.asc(),
                )
            else:
                query = query.order_by(
                    ContactModel.scheduled_appointment_at.asc().nulls_last(),
                    ContactModel.id.asc(),
                )
            if contact_query.offset:
                query = query.offset(contact_query.offset)
            if contact_query.limit is not None:
                query = query.limit(contact_query.limit)
            return [self._model_to_entity(model) for model in query.all()]
        except SQLAlchemyError as e:
            logger.error(f"Database error while querying contacts: {str(e)}")
            raise StorageError("Failed to query contacts") from e
        finally:
            db.close()
