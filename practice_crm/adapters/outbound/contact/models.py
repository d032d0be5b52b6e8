"""SQLAlchemy ORM models for contacts."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ContactModel(Base):
    """SQLAlchemy model for contacts table."""

    __tablename__ = "contacts"

    id = Column(String, primary_key=True)
    uuid = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    phone = Column(String, nullable=True, index=True)  # E.164
    contact_status = Column(String, nullable=False, default="new")
    scheduled_appointment_at = Column(DateTime(timezone=True), nullable=True, index=True)
    time_zone = Column(String, nullable=True)
    appointment_status = Column(String, nullable=True, index=True)
    appointment_notes = Column(Text, nullable=True)
    last_appointment_update = Column(DateTime(timezone=True), nullable=True)
    last_auto_reminder_sent = Column(DateTime(timezone=True), nullable=True)
    auto_reminder_count = Column(Integer, nullable=False, default=0)
    workflow_markers = Column(JSON, nullable=False, default=dict)  # rule -> ISO timestamp
    conversation_responses = Column(JSON, nullable=False, default=dict)
    # newest answered_at in conversation_responses, kept in step by the repository
    last_response_at = Column(DateTime(timezone=True), nullable=True, index=True)
    conversation_complete = Column(Boolean, nullable=False, default=False)
    custom_fields = Column(JSON, nullable=False, default=dict)
    crm_notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # UPDATE ... WHERE version = <loaded version>; StaleDataError on mismatch
    __mapper_args__ = {"version_id_col": version}
