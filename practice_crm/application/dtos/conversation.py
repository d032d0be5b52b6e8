"""Conversation DTOs."""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict

from practice_crm.application.dtos.availability import AvailableSlot
from practice_crm.application.dtos.base import DTO
from practice_crm.domain.entities.conversation_response import ConversationResponse


class AnsweredItem(DTO):
    """An answered question."""

    question_id: str
    question: str
    response: str
    response_value: Optional[str] = None
    timestamp: datetime

    @classmethod
    def from_entity(cls, response: ConversationResponse) -> "AnsweredItem":
        """Build from a ConversationResponse entity."""
        return cls(
            question_id=response.question_id,
            question=response.question,
            response=response.response,
            response_value=response.response_value,
            timestamp=response.timestamp,
        )


class ConversationState(DTO):
    """Derived conversation progress for a contact."""

    contact_id: str
    answered: list[AnsweredItem]
    next: str  # next question id, or "complete"
    next_prompt: Optional[str] = None
    complete: bool
    outcome: Optional[str] = None
    rescheduled_to: Optional[AvailableSlot] = None  # new slot after a pull-forward answer

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "contactId": "c1",
                "answered": [],
                "next": "georgia_location",
                "complete": False,
            }
        }
    )
