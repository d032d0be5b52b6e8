"""HTTP request and response schemas (camelCase on the wire)."""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from practice_crm.application.dtos.appointment import AppointmentSummary
from practice_crm.application.dtos.availability import AvailableSlot, BookedSlot
from practice_crm.application.dtos.contact import ContactSummary
from practice_crm.application.dtos.conversation import ConversationState
from practice_crm.application.dtos.notification import NotificationOutcome
from practice_crm.application.dtos.workflow import WorkflowError
from practice_crm.domain.value_objects.contact_identifier import ContactIdentifier


class CamelModel(BaseModel):
    """Base for HTTP schemas."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactReference(CamelModel):
    """Request body part naming a contact by contactId (untagged) or uuid."""

    contact_id: Optional[str] = None
    uuid: Optional[str] = None

    def identifier(self) -> ContactIdentifier:
        """Resolve to a ContactIdentifier (raises InvalidInputError when absent)."""
        return ContactIdentifier.from_request(contact_id=self.contact_id, uuid=self.uuid)


class ScheduleAppointmentRequest(ContactReference):
    """Schedule or reschedule an appointment."""

    scheduled_at: datetime
    time_zone: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "contactId": "5f2b1c9e8d7a4b3c2e1f0a9b8c7d6e5f",
                "scheduledAt": "2026-11-02T15:00:00Z",
                "timeZone": "America/New_York",
            }
        }
    )


class CancelAppointmentRequest(ContactReference):
    """Cancel an appointment."""

    reason: Optional[str] = None


class AppointmentStatusRequest(ContactReference):
    """Administrative status change."""

    status: str
    notes: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"uuid": "3f6c2a1e-8b7d-4c5e-9a0f-1d2e3c4b5a69", "status": "no-show"}
        }
    )


class ConversationStateRequest(ContactReference):
    """Conversation state lookup."""


class ConversationRespondRequest(ContactReference):
    """Record an answer; questionId defaults to the contact's current question."""

    question_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("questionId", "selectedStepId", "question_id")
    )
    response: str = Field(validation_alias=AliasChoices("response", "userResponse"))
    response_value: Optional[str] = None
    question: Optional[str] = None


class AppointmentChangeResponse(CamelModel):
    """Response of schedule, cancel and status endpoints."""

    success: bool = True
    changed: bool = True
    partial_success: bool = False
    contact: ContactSummary
    notifications: list[NotificationOutcome] = Field(default_factory=list)


class CaptureContactResponse(CamelModel):
    """Response of the booking form endpoint."""

    success: bool = True
    created: bool
    partial_success: bool = False
    contact: ContactSummary
    notifications: list[NotificationOutcome] = Field(default_factory=list)


class AppointmentListResponse(CamelModel):
    """Response of the appointment listing."""

    success: bool = True
    appointments: list[AppointmentSummary]
    count: int


class AvailableSlotsResponse(CamelModel):
    """Earliest open session today and tomorrow."""

    success: bool = True
    today: Optional[AvailableSlot] = None
    tomorrow: Optional[AvailableSlot] = None


class BookedSlotsResponse(CamelModel):
    """Time held by scheduled appointments inside a window."""

    success: bool = True
    booked_slots: list[BookedSlot]
    count: int


class ConversationStateResponse(CamelModel):
    """Response of the conversation endpoints."""

    success: bool = True
    conversation_state: ConversationState


class WorkflowSweepResponse(CamelModel):
    """Response of the cron endpoint."""

    success: bool = True
    total_processed: int
    breakdown: dict[str, int]
    errors: list[WorkflowError]
    processing_time_ms: int
