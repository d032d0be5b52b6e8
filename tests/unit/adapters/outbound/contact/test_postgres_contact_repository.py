"""Unit tests for Postgres contact repository using SQLite in-memory."""

from datetime import datetime, timedelta, timezone

import pytest
from conftest import NOW, make_contact
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from practice_crm.adapters.outbound.contact.models import Base
from practice_crm.adapters.outbound.contact.postgres_contact_repository import (
    PostgresContactRepository,
)
from practice_crm.application.ports.contact_repository import (
    ORDER_BY_LAST_RESPONSE,
    ContactQuery,
)
from practice_crm.domain.entities.contact import AppointmentStatus, ContactStatus
from practice_crm.domain.entities.conversation_response import ConversationResponse
from practice_crm.domain.errors import ConflictError, NotFoundError
from practice_crm.domain.value_objects.contact_identifier import ContactIdentifier


@pytest.fixture
def sqlite_engine():
    """Create SQLite in-memory engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def pg_repository(sqlite_engine, monkeypatch):
    """Create Postgres repository with SQLite in-memory database for testing."""
    # Patch get_db_session to use our test session
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sqlite_engine)

    def get_test_db_session():
        return SessionLocal()

    monkeypatch.setattr(
        "practice_crm.adapters.outbound.contact.postgres_contact_repository.get_db_session",
        get_test_db_session,
    )

    return PostgresContactRepository()


@pytest.mark.asyncio
async def test_insert_and_get_round_trip(pg_repository):
    """Test that inserting and reading a contact works correctly."""
    answered_at = datetime(2026, 11, 1, 10, 0, tzinfo=timezone.utc)
    contact = make_contact(
        "c1",
        email="Jordan@Example.com",
        phone="404-555-0134",
        scheduled_appointment_at=NOW,
        appointment_status=AppointmentStatus.SCHEDULED,
        time_zone="America/New_York",
        workflow_markers={"appointment_reminder_24h": answered_at},
        conversation_responses={
            "georgia_location": ConversationResponse(
                "georgia_location", "Are you in Georgia?", "Yes - in Georgia", "yes", answered_at
            )
        },
        custom_fields={"message": "Evenings work best"},
    )

    await pg_repository.insert(contact)
    stored = await pg_repository.get(ContactIdentifier.by_uuid(contact.uuid))

    assert stored.id == "c1"
    assert stored.email == "jordan@example.com"
    assert stored.phone == "+14045550134"
    assert stored.scheduled_appointment_at == NOW
    assert stored.appointment_status == AppointmentStatus.SCHEDULED
    assert stored.contact_status == ContactStatus.NEW
    assert stored.workflow_markers == {"appointment_reminder_24h": answered_at}
    assert stored.conversation_responses["georgia_location"].response_value == "yes"
    assert stored.custom_fields == {"message": "Evenings work best"}
    assert stored.version == 1


@pytest.mark.asyncio
async def test_get_missing_contact_raises_not_found(pg_repository):
    """Test missing contacts raise NotFoundError."""
    with pytest.raises(NotFoundError):
        await pg_repository.get(ContactIdentifier.by_id("missing"))


@pytest.mark.asyncio
async def test_insert_duplicate_email_conflicts(pg_repository):
    """Test the unique email index maps to ConflictError."""
    await pg_repository.insert(make_contact("c1", email="same@example.com"))

    with pytest.raises(ConflictError):
        await pg_repository.insert(make_contact("c2", email="same@example.com"))


@pytest.mark.asyncio
async def test_update_applies_fields_and_bumps_version(pg_repository):
    """Test partial update."""
    await pg_repository.insert(make_contact("c1"))

    updated = await pg_repository.update(
        ContactIdentifier.by_id("c1"),
        {
            "appointment_status": AppointmentStatus.CANCELLED,
            "appointment_notes": "Appointment cancelled by user",
            "auto_reminder_count": 2,
        },
        expected_version=1,
    )

    assert updated.appointment_status == AppointmentStatus.CANCELLED
    assert updated.appointment_notes == "Appointment cancelled by user"
    assert updated.auto_reminder_count == 2
    assert updated.version == 2


@pytest.mark.asyncio
async def test_update_with_stale_version_conflicts(pg_repository):
    """Test compare-and-swap rejects a stale version."""
    await pg_repository.insert(make_contact("c1"))
    await pg_repository.update(ContactIdentifier.by_id("c1"), {"name": "Sam"})

    with pytest.raises(ConflictError):
        await pg_repository.update(
            ContactIdentifier.by_id("c1"), {"name": "Alex"}, expected_version=1
        )

    stored = await pg_repository.get(ContactIdentifier.by_id("c1"))
    assert stored.name == "Sam"


@pytest.mark.asyncio
async def test_update_missing_contact_raises_not_found(pg_repository):
    """Test updating a missing contact."""
    with pytest.raises(NotFoundError):
        await pg_repository.update(ContactIdentifier.by_id("missing"), {"name": "Sam"})


@pytest.mark.asyncio
async def test_get_by_email_and_phone(pg_repository):
    """Test lookups by email and phone."""
    await pg_repository.insert(make_contact("c1", email="jordan@example.com"))

    by_email = await pg_repository.get_by_email(" JORDAN@example.com ")
    by_phone = await pg_repository.get_by_phone("(404) 555-0134")

    assert by_email.id == "c1"
    assert by_phone.id == "c1"
    assert await pg_repository.get_by_email("nobody@example.com") is None


@pytest.mark.asyncio
async def test_query_window_and_order(pg_repository):
    """Test scheduled window filtering, ordering and limit."""
    for contact_id, hours in (("late", 20), ("soon", 1), ("past", -3)):
        await pg_repository.insert(
            make_contact(
                contact_id,
                scheduled_appointment_at=NOW + timedelta(hours=hours),
                appointment_status=AppointmentStatus.SCHEDULED,
            )
        )
    await pg_repository.insert(make_contact("never", phone=None))

    upcoming = await pg_repository.query(
        ContactQuery(
            appointment_status=AppointmentStatus.SCHEDULED,
            scheduled_from=NOW,
            scheduled_until=NOW + timedelta(hours=24),
        )
    )
    everyone = await pg_repository.query(ContactQuery())
    first_two = await pg_repository.query(ContactQuery(has_appointment=True, limit=2))
    without_phone = await pg_repository.query(ContactQuery(has_phone=False))

    assert [c.id for c in upcoming] == ["soon", "late"]
    assert [c.id for c in everyone] == ["past", "soon", "late", "never"]
    assert [c.id for c in first_two] == ["past", "soon"]
    assert [c.id for c in without_phone] == ["never"]


@pytest.mark.asyncio
async def test_query_has_conversation(pg_repository):
    """Test the conversation filter is applied before the limit."""
    answered_at = datetime(2026, 11, 1, 10, 0, tzinfo=timezone.utc)
    await pg_repository.insert(make_contact("quiet"))
    await pg_repository.insert(
        make_contact(
            "talking",
            conversation_responses={
                "georgia_location": ConversationResponse(
                    "georgia_location", "Q", "Yes", "yes", answered_at
                )
            },
        )
    )

    contacts = await pg_repository.query(ContactQuery(has_conversation=True, limit=1))

    assert [c.id for c in contacts] == ["talking"]


def answered_at(at):
    return {"georgia_location": ConversationResponse("georgia_location", "Q", "Yes", "yes", at)}


@pytest.mark.asyncio
async def test_last_response_at_follows_written_answers(pg_repository, sqlite_engine):
    """Test the denormalized last-answer column tracks inserts and updates."""
    first = datetime(2026, 11, 1, 10, 0, tzinfo=timezone.utc)
    later = datetime(2026, 11, 1, 12, 0, tzinfo=timezone.utc)
    await pg_repository.insert(make_contact("c1", conversation_responses=answered_at(first)))
    await pg_repository.update(
        ContactIdentifier.by_id("c1"),
        {"conversation_responses": answered_at(later), "conversation_complete": True},
    )

    stored = await pg_repository.get(ContactIdentifier.by_id("c1"))
    with sqlite_engine.connect() as connection:
        row = connection.exec_driver_sql(
            "SELECT last_response_at FROM contacts WHERE id = 'c1'"
        ).one()

    assert stored.conversation_complete is True
    assert stored.latest_response_at() == later
    assert row[0] is not None


@pytest.mark.asyncio
async def test_query_stale_unfinished_conversations_in_sql(pg_repository):
    """Test follow-up filters, last-answer ordering and offset run in the database."""
    for contact_id, hours_ago in (("recent", 2), ("older", 30), ("oldest", 50)):
        await pg_repository.insert(
            make_contact(
                contact_id,
                conversation_responses=answered_at(NOW - timedelta(hours=hours_ago)),
            )
        )
    await pg_repository.insert(
        make_contact(
            "finished",
            conversation_responses=answered_at(NOW - timedelta(hours=60)),
            conversation_complete=True,
        )
    )

    stale = await pg_repository.query(
        ContactQuery(
            has_conversation=True,
            conversation_complete=False,
            last_response_before=NOW - timedelta(hours=24),
            order_by=ORDER_BY_LAST_RESPONSE,
        )
    )
    second = await pg_repository.query(
        ContactQuery(has_conversation=True, order_by=ORDER_BY_LAST_RESPONSE, offset=1, limit=2)
    )

    assert [c.id for c in stale] == ["oldest", "older"]
    assert [c.id for c in second] == ["oldest", "older"]
