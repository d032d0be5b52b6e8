"""Automated workflow sweep: reminders, missed appointments, questionnaire follow-ups."""

import dataclasses
import time
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Optional

from practice_crm.application.dtos.notification import NotificationOutcome
from practice_crm.application.dtos.workflow import SweepResult, WorkflowError
from practice_crm.application.ports.contact_repository import (
    ORDER_BY_LAST_RESPONSE,
    ContactQuery,
    ContactRepository,
)
from practice_crm.application.use_cases.contact_notifier import ContactNotifier
from practice_crm.domain.conversation_script import ConversationScript, build_intake_script
from practice_crm.domain.entities.contact import AppointmentStatus, Contact
from practice_crm.domain.value_objects.contact_identifier import ContactIdentifier
from practice_crm.infrastructure.logging.logger import log_event, log_workflow_rule, logger

APPOINTMENT_REMINDER_24H = "appointment_reminder_24h"
APPOINTMENT_REMINDER_2H = "appointment_reminder_2h"
MISSED_APPOINTMENT = "missed_appointment"
QUESTIONNAIRE_FOLLOWUP = "questionnaire_followup"

# Tightest window first: an appointment inside 2h gets the 2h reminder only
REMINDER_WINDOWS = (
    (APPOINTMENT_REMINDER_2H, 2),
    (APPOINTMENT_REMINDER_24H, 24),
)

ALL_RULES = (
    APPOINTMENT_REMINDER_24H,
    APPOINTMENT_REMINDER_2H,
    MISSED_APPOINTMENT,
    QUESTIONNAIRE_FOLLOWUP,
)

NO_SHOW_NOTE = "Marked as no-show by automated check"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessWorkflows:
    """One bounded, idempotent pass over all time-based workflow rules.

    Each rule fires at most once per contact per triggering window: reminders
    and follow-ups are deduplicated through per-rule markers, missed
    appointments through the status change itself. A failure for one contact
    is recorded on the result and the pass continues.
    """

    def __init__(
        self,
        repository: ContactRepository,
        notifier: ContactNotifier,
        script: Optional[ConversationScript] = None,
        missed_grace: timedelta = timedelta(minutes=15),
        questionnaire_stale_after: timedelta = timedelta(hours=24),
        batch_size: int = 500,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize use case.

        Args:
            repository: Contact store
            notifier: Sends reminders, nudges and operator alerts
            script: Question script (defaults to the intake script)
            missed_grace: Time after the appointment before it counts as missed
            questionnaire_stale_after: Idle time before an unfinished questionnaire is nudged
            batch_size: Page size for the contact queries of each rule
            clock: Returns the current UTC time
        """
        self._repository = repository
        self._notifier = notifier
        self._script = script or build_intake_script()
        self._missed_grace = missed_grace
        self._questionnaire_stale_after = questionnaire_stale_after
        self._batch_size = batch_size
        self._clock = clock

    async def run(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Run every rule once.

        Args:
            now: Evaluation time (defaults to the clock)

        Returns:
            SweepResult with per-rule counts and collected errors
        """
        now = now or self._clock()
        started = time.perf_counter()
        breakdown = {rule: 0 for rule in ALL_RULES}
        errors: list[WorkflowError] = []

        for step in (self._send_reminders, self._mark_missed, self._nudge_questionnaires):
            try:
                await step(now, breakdown, errors)
            except Exception as e:
                # A failed query aborts only this rule
                logger.exception(f"Workflow step {step.__name__} failed")
                errors.append(WorkflowError(rule=step.__name__.lstrip("_"), error=str(e)))

        result = SweepResult(
            total_processed=sum(breakdown.values()),
            breakdown=breakdown,
            errors=errors,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
        )
        log_event(
            "workflow",
            total_processed=result.total_processed,
            errors=len(errors),
            processing_time_ms=result.processing_time_ms,
        )
        return result

    async def _record_send(
        self, contact: Contact, rule: str, now: datetime
    ) -> None:
        """Bookkeeping after a successful send, as one update."""
        markers = dict(contact.workflow_markers)
        markers[rule] = now
        await self._repository.update(
            ContactIdentifier.by_id(contact.id),
            {
                "last_auto_reminder_sent": now,
                "auto_reminder_count": contact.auto_reminder_count + 1,
                "workflow_markers": markers,
            },
            expected_version=contact.version,
        )

    def _failed(
        self,
        errors: list[WorkflowError],
        rule: str,
        contact: Contact,
        error: Optional[str],
    ) -> None:
        errors.append(WorkflowError(rule=rule, contact_id=contact.id, error=error or "unknown error"))
        log_workflow_rule(rule, contact.id, fired=False, error=error)

    async def _send_and_record(
        self,
        contact: Contact,
        rule: str,
        now: datetime,
        outcome: NotificationOutcome,
        breakdown: dict[str, int],
        errors: list[WorkflowError],
    ) -> None:
        if not outcome.success:
            # Bookkeeping untouched so the next pass retries
            self._failed(errors, rule, contact, outcome.error)
            return
        await self._record_send(contact, rule, now)
        breakdown[rule] += 1
        log_workflow_rule(rule, contact.id, fired=True, message_id=outcome.message_id)

    async def _scan(self, contact_query: ContactQuery) -> AsyncIterator[Contact]:
        """Yield every match of a query whose membership the sweep does not change."""
        offset = 0
        while True:
            page = await self._repository.query(
                dataclasses.replace(contact_query, offset=offset, limit=self._batch_size)
            )
            for contact in page:
                yield contact
            if len(page) < self._batch_size:
                return
            offset += len(page)

    async def _send_reminders(
        self, now: datetime, breakdown: dict[str, int], errors: list[WorkflowError]
    ) -> None:
        widest = max(hours for _, hours in REMINDER_WINDOWS)
        contacts = self._scan(
            ContactQuery(
                appointment_status=AppointmentStatus.SCHEDULED,
                has_phone=True,
                scheduled_from=now,
                scheduled_until=now + timedelta(hours=widest),
            )
        )
        async for contact in contacts:
            scheduled = contact.scheduled_appointment_at
            if scheduled is None or scheduled <= now:
                continue
            for rule, hours in REMINDER_WINDOWS:
                if scheduled - now > timedelta(hours=hours):
                    continue
                marker = contact.workflow_markers.get(rule)
                if marker is None or marker < scheduled - timedelta(hours=hours):
                    try:
                        outcome = await self._notifier.appointment_reminder(contact, hours)
                        await self._send_and_record(
                            contact, rule, now, outcome, breakdown, errors
                        )
                    except Exception as e:
                        logger.exception(f"Reminder failed for contact {contact.id}")
                        self._failed(errors, rule, contact, str(e))
                break

    async def _mark_missed(
        self, now: datetime, breakdown: dict[str, int], errors: list[WorkflowError]
    ) -> None:
        # Marked contacts drop out of the result, so only failures are skipped over
        still_scheduled = 0
        while True:
            contacts = await self._repository.query(
                ContactQuery(
                    appointment_status=AppointmentStatus.SCHEDULED,
                    scheduled_until=now - self._missed_grace,
                    offset=still_scheduled,
                    limit=self._batch_size,
                )
            )
            for contact in contacts:
                if not await self._mark_one_missed(contact, now, breakdown, errors):
                    still_scheduled += 1
            if len(contacts) < self._batch_size:
                return

    async def _mark_one_missed(
        self,
        contact: Contact,
        now: datetime,
        breakdown: dict[str, int],
        errors: list[WorkflowError],
    ) -> bool:
        """Mark one contact as a no-show and alert the operator.

        Returns:
            False if the contact is still scheduled afterwards
        """
        try:
            markers = dict(contact.workflow_markers)
            markers[MISSED_APPOINTMENT] = now
            notes = (
                f"{contact.appointment_notes}\n{NO_SHOW_NOTE}"
                if contact.appointment_notes
                else NO_SHOW_NOTE
            )
            updated = await self._repository.update(
                ContactIdentifier.by_id(contact.id),
                {
                    "appointment_status": AppointmentStatus.NO_SHOW,
                    "appointment_notes": notes,
                    "last_appointment_update": now,
                    "workflow_markers": markers,
                },
                expected_version=contact.version,
            )
            breakdown[MISSED_APPOINTMENT] += 1
        except Exception as e:
            logger.exception(f"Marking no-show failed for contact {contact.id}")
            self._failed(errors, MISSED_APPOINTMENT, contact, str(e))
            return False

        try:
            outcome = await self._notifier.missed_appointment_alert(updated)
        except Exception as e:
            logger.exception(f"No-show alert failed for contact {contact.id}")
            self._failed(errors, MISSED_APPOINTMENT, contact, str(e))
            return True
        if outcome.success:
            log_workflow_rule(MISSED_APPOINTMENT, contact.id, fired=True)
        else:
            self._failed(errors, MISSED_APPOINTMENT, contact, outcome.error)
        return True

    async def _nudge_questionnaires(
        self, now: datetime, breakdown: dict[str, int], errors: list[WorkflowError]
    ) -> None:
        contacts = self._scan(
            ContactQuery(
                has_phone=True,
                has_conversation=True,
                conversation_complete=False,
                last_response_before=now - self._questionnaire_stale_after,
                order_by=ORDER_BY_LAST_RESPONSE,
            )
        )
        async for contact in contacts:
            progress = self._script.progress(contact.conversation_responses)
            latest = contact.latest_response_at()
            if progress.complete or latest is None:
                continue
            if now - latest < self._questionnaire_stale_after:
                continue
            marker = contact.workflow_markers.get(QUESTIONNAIRE_FOLLOWUP)
            if marker is not None and marker >= latest:
                continue
            try:
                outcome = await self._notifier.questionnaire_nudge(contact, progress.next_prompt)
                await self._send_and_record(
                    contact, QUESTIONNAIRE_FOLLOWUP, now, outcome, breakdown, errors
                )
            except Exception as e:
                logger.exception(f"Questionnaire follow-up failed for contact {contact.id}")
                self._failed(errors, QUESTIONNAIRE_FOLLOWUP, contact, str(e))
