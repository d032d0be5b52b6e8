"""Scripted intake conversation use case."""

import logging
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from practice_crm.application.dtos.availability import AvailableSlot
from practice_crm.application.dtos.conversation import AnsweredItem, ConversationState
from practice_crm.application.ports.contact_repository import ContactRepository
from practice_crm.application.use_cases.check_availability import CheckAvailability
from practice_crm.application.use_cases.manage_appointment import ManageAppointment
from practice_crm.application.use_cases.user_messages_en import UserMessagesEN
from practice_crm.domain.conversation_script import (
    PULL_FORWARD_QUESTION,
    ConversationScript,
    FlowOutcome,
    ScriptProgress,
    build_intake_script,
)
from practice_crm.domain.entities.contact import Contact, ContactStatus
from practice_crm.domain.entities.conversation_response import ConversationResponse
from practice_crm.domain.errors import ConflictError, InvalidInputError
from practice_crm.domain.value_objects.contact_identifier import ContactIdentifier
from practice_crm.infrastructure.logging.logger import log_conversation_step, log_event


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def append_note(existing: Optional[str], question: str, response: str) -> str:
    """
    Append a 'question: response' line to the contact's CRM notes.

    Args:
        existing: Current notes
        question: Question text
        response: Display response

    Returns:
        Updated notes
    """
    entry = f"{question}: {response}"
    if not existing:
        return f"Conversation: {entry}"
    return f"{existing} | {entry}"


class ConversationFlow:
    """Records answers to the intake script and derives the next step.

    With availability and appointments configured, the pull-forward question
    names the earliest open times, and a 'today' or 'tomorrow' answer moves
    the appointment there.
    """

    def __init__(
        self,
        repository: ContactRepository,
        script: Optional[ConversationScript] = None,
        max_conflict_retries: int = 3,
        availability: Optional[CheckAvailability] = None,
        appointments: Optional[ManageAppointment] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize use case.

        Args:
            repository: Contact store
            script: Question script (defaults to the intake script)
            max_conflict_retries: Retries of the read-modify-write on version conflicts
            availability: Optional open-slot lookup for the pull-forward offer
            appointments: Optional appointment use case that applies a pull-forward
            clock: Returns the current UTC time
        """
        self._repository = repository
        self._script = script or build_intake_script()
        self._max_conflict_retries = max_conflict_retries
        self._availability = availability
        self._appointments = appointments
        self._clock = clock

    @property
    def script(self) -> ConversationScript:
        """The question script in use."""
        return self._script

    async def _next_prompt(self, progress: ScriptProgress) -> Optional[str]:
        if progress.next_id != PULL_FORWARD_QUESTION or self._availability is None:
            return progress.next_prompt
        slots = await self._availability.pull_forward_slots()
        return UserMessagesEN.pull_forward_prompt(
            slots.today.display_time if slots.today else None,
            slots.tomorrow.display_time if slots.tomorrow else None,
        )

    async def _state(
        self,
        contact_id: str,
        responses: Mapping[str, ConversationResponse],
        rescheduled_to: Optional[AvailableSlot] = None,
    ) -> ConversationState:
        progress = self._script.progress(responses)
        answered = [
            AnsweredItem.from_entity(responses[question_id])
            for question_id in self._script.question_ids
            if question_id in responses
        ]
        return ConversationState(
            contact_id=contact_id,
            answered=answered,
            next=progress.next_id,
            next_prompt=await self._next_prompt(progress),
            complete=progress.complete,
            outcome=progress.outcome.value if progress.outcome else None,
            rescheduled_to=rescheduled_to,
        )

    async def get_state(self, identifier: ContactIdentifier) -> ConversationState:
        """
        Get the conversation state of a contact.

        Args:
            identifier: Contact identifier

        Returns:
            ConversationState with answered items in script order

        Raises:
            NotFoundError: If the contact does not exist
        """
        contact = await self._repository.get(identifier)
        return await self._state(contact.id, contact.conversation_responses)
    async def record_response(
        self,
        identifier: ContactIdentifier,
        question_id: str,
        response: str,
        response_value: Optional[str] = None,
        question: Optional[str] = None,
    ) -> ConversationState:
        """
        Record an answer and return the new conversation state.

        The whole answer map is re-read and merged on every attempt, and the
        write is conditional on the version read, so answers to different
        questions never overwrite each other. Answering the same question again
        replaces the earlier answer.

        Args:
            identifier: Contact identifier
            question_id: Script question id
            response: Display response (or raw reply text)
            response_value: Normalized value; interpreted from the reply when omitted
            question: Question text; taken from the script when omitted

        Returns:
            Updated ConversationState

        Raises:
            InvalidInputError: If the question id is unknown or the response is empty
            NotFoundError: If the contact does not exist
            ConflictError: If concurrent writes keep winning after all retries
        """
        if not question_id or not self._script.is_valid_id(question_id):
            raise InvalidInputError(f"Unknown question id: {question_id}")
        if response is None or not str(response).strip():
            raise InvalidInputError("Response is required")

        scripted = self._script.question(question_id)
        if response_value is None:
            response, response_value = scripted.interpret(response)
        entry = ConversationResponse(
            question_id=question_id,
            question=question or scripted.text,
            response=str(response).strip(),
            response_value=response_value,
            timestamp=self._clock(),
        )

        attempt = 0
        while True:
            attempt += 1
            contact = await self._repository.get(identifier)
            merged = dict(contact.conversation_responses)
            merged[question_id] = entry
            try:
                updated = await self._repository.update(
                    identifier,
                    self._changes(contact, merged, entry),
                    expected_version=contact.version,
                )
                break
            except ConflictError:
                if attempt > self._max_conflict_retries:
                    raise
                log_event(
                    "conversation",
                    contact_id=contact.id,
                    retry=attempt,
                    reason="version_conflict",
                )

        rescheduled_to = None
        if question_id == PULL_FORWARD_QUESTION:
            rescheduled_to = await self._pull_forward(updated, response_value)
        state = await self._state(updated.id, updated.conversation_responses, rescheduled_to)
        log_conversation_step(
            updated.id, question_id, state.next, response_value=response_value
        )
        return state

    async def _pull_forward(
        self, contact: Contact, choice: Optional[str]
    ) -> Optional[AvailableSlot]:
        """Move the appointment to the open slot the contact chose, if any."""
        if self._availability is None or self._appointments is None:
            return None
        slots = await self._availability.pull_forward_slots()
        slot = slots.for_choice(choice)
        if slot is None:
            if choice in ("today", "tomorrow"):
                log_event(
                    "conversation", contact_id=contact.id, reason="no_open_slot", choice=choice
                )
            return None
        try:
            await self._appointments.schedule(ContactIdentifier.by_id(contact.id), slot.start_time)
        except (ConflictError, InvalidInputError) as e:
            # The answer stays recorded; the appointment keeps its time
            log_event(
                "conversation",
                contact_id=contact.id,
                level=logging.WARNING,
                reason="pull_forward_failed",
                error=str(e),
            )
            return None
        return slot

    def _changes(
        self,
        contact: Contact,
        merged: dict[str, ConversationResponse],
        entry: ConversationResponse,
    ) -> dict:
        progress = self._script.progress(merged)
        target = ContactStatus.CONTACTED
        if progress.outcome == FlowOutcome.COMPLETE:
            target = ContactStatus.QUALIFIED
        return {
            "conversation_responses": merged,
            "conversation_complete": progress.complete,
            "crm_notes": append_note(contact.crm_notes, entry.question, entry.response),
            "contact_status": contact.advanced_status(target),
        }

    async def handle_inbound_sms(self, phone: str, body: str) -> str:
        """
        Record an inbound SMS reply against the contact's current question.

        Args:
            phone: Sender phone number
            body: Message text

        Returns:
            Text to send back: the next prompt, or a closing message
        """
        contact = await self._repository.get_by_phone(phone)
        if contact is None:
            log_event("sms", reason="unknown_sender")
            return UserMessagesEN.UNKNOWN_SENDER_REPLY

        progress = self._script.progress(contact.conversation_responses)
        if progress.complete:
            return UserMessagesEN.FLOW_COMPLETE_REPLY
        if not (body or "").strip():
            return await self._next_prompt(progress) or ""

        state = await self.record_response(
            ContactIdentifier.by_id(contact.id), progress.next_id, body
        )
        reply = state.next_prompt or ""
        if state.rescheduled_to is not None:
            moved = UserMessagesEN.pull_forward_moved(state.rescheduled_to.display_time)
            reply = f"{moved}\n\n{reply}" if reply else moved
        return reply
