"""Unit tests for the ProcessWorkflows sweep."""

from datetime import timedelta

import pytest
from conftest import NOW, make_contact

from practice_crm.application.dtos.notification import SendResult
from practice_crm.application.use_cases.contact_notifier import ContactNotifier
from practice_crm.application.use_cases.process_workflows import (
    ALL_RULES,
    APPOINTMENT_REMINDER_2H,
    APPOINTMENT_REMINDER_24H,
    MISSED_APPOINTMENT,
    NO_SHOW_NOTE,
    QUESTIONNAIRE_FOLLOWUP,
    ProcessWorkflows,
)
from practice_crm.domain.entities.contact import AppointmentStatus
from practice_crm.domain.entities.conversation_response import ConversationResponse
from practice_crm.domain.errors import StorageError
from practice_crm.domain.value_objects.contact_identifier import ContactIdentifier


def build_sweep(repository, sender, admin_email="admin@example.com", **kwargs):
    """Create a sweep with a fixed clock and no backoff delay."""
    notifier = ContactNotifier(sender, admin_email=admin_email, base_delay=0)
    return ProcessWorkflows(repository, notifier, clock=lambda: NOW, **kwargs)


@pytest.fixture
def sweep(repository, sender):
    """Create the workflow sweep."""
    return build_sweep(repository, sender)


def scheduled(contact_id, delta, **kwargs):
    """Contact with a SCHEDULED appointment at NOW + delta."""
    return make_contact(
        contact_id,
        scheduled_appointment_at=NOW + delta,
        appointment_status=AppointmentStatus.SCHEDULED,
        **kwargs,
    )


def answered(hours_ago, **values):
    """Conversation answers recorded the given number of hours before NOW."""
    at = NOW - timedelta(hours=hours_ago)
    return {
        question_id: ConversationResponse(question_id, question_id, value, value, at)
        for question_id, value in values.items()
    }


async def stored(repository, contact_id):
    return await repository.get(ContactIdentifier.by_id(contact_id))


@pytest.mark.asyncio
async def test_empty_sweep_reports_every_rule(sweep):
    """Test the breakdown always lists all rules."""
    result = await sweep.run()

    assert result.total_processed == 0
    assert result.breakdown == {rule: 0 for rule in ALL_RULES}
    assert result.errors == []
    assert result.processing_time_ms >= 0


@pytest.mark.asyncio
async def test_24h_reminder_fires_once(sweep, repository, sender):
    """Test the day-before reminder is sent once and recorded."""
    await repository.insert(scheduled("c1", timedelta(hours=20)))

    first = await sweep.run()
    second = await sweep.run()

    assert first.breakdown[APPOINTMENT_REMINDER_24H] == 1
    assert first.total_processed == 1
    assert second.total_processed == 0
    assert len(sender.sms) == 1
    assert sender.sms[0][0] == "+14045550134"
    contact = await stored(repository, "c1")
    assert contact.auto_reminder_count == 1
    assert contact.last_auto_reminder_sent == NOW
    assert contact.workflow_markers[APPOINTMENT_REMINDER_24H] == NOW


@pytest.mark.asyncio
async def test_inside_2h_only_the_2h_reminder_fires(sweep, repository, sender):
    """Test the tightest window wins."""
    await repository.insert(scheduled("c1", timedelta(hours=1)))

    result = await sweep.run()

    assert result.breakdown[APPOINTMENT_REMINDER_2H] == 1
    assert result.breakdown[APPOINTMENT_REMINDER_24H] == 0
    assert "starts soon" in sender.sms[0][1]


@pytest.mark.asyncio
async def test_2h_reminder_follows_earlier_24h_reminder(sweep, repository):
    """Test both reminders fire for the same appointment at their own times."""
    await repository.insert(
        scheduled(
            "c1",
            timedelta(hours=1),
            auto_reminder_count=1,
            workflow_markers={APPOINTMENT_REMINDER_24H: NOW - timedelta(hours=22)},
        )
    )

    result = await sweep.run()

    assert result.breakdown[APPOINTMENT_REMINDER_2H] == 1
    contact = await stored(repository, "c1")
    assert contact.auto_reminder_count == 2


@pytest.mark.asyncio
async def test_rescheduled_appointment_gets_a_new_reminder(sweep, repository):
    """Test a marker from an earlier appointment doesn't suppress the new one."""
    await repository.insert(
        scheduled(
            "c1",
            timedelta(hours=20),
            workflow_markers={APPOINTMENT_REMINDER_24H: NOW - timedelta(days=3)},
        )
    )

    result = await sweep.run()

    assert result.breakdown[APPOINTMENT_REMINDER_24H] == 1


@pytest.mark.asyncio
async def test_no_reminder_outside_window_or_without_phone(sweep, repository, sender):
    """Test far-off appointments and contacts without phone are skipped."""
    await repository.insert(scheduled("far", timedelta(hours=30)))
    await repository.insert(scheduled("nophone", timedelta(hours=3), phone=None))

    result = await sweep.run()

    assert result.total_processed == 0
    assert sender.sms == []


@pytest.mark.asyncio
async def test_failed_reminder_leaves_bookkeeping(sweep, repository, sender):
    """Test a failed send is reported and retried on the next pass."""
    await repository.insert(scheduled("c1", timedelta(hours=20)))
    sender.sms_results.append(SendResult(success=False, error="Twilio error 400: bad number"))

    failed = await sweep.run()
    retried = await sweep.run()

    assert failed.breakdown[APPOINTMENT_REMINDER_24H] == 0
    assert failed.errors[0].rule == APPOINTMENT_REMINDER_24H
    assert failed.errors[0].contact_id == "c1"
    assert "bad number" in failed.errors[0].error
    assert retried.breakdown[APPOINTMENT_REMINDER_24H] == 1
    contact = await stored(repository, "c1")
    assert contact.auto_reminder_count == 1


@pytest.mark.asyncio
async def test_missed_appointment_marked_no_show(sweep, repository, sender):
    """Test appointments past the grace period become NO_SHOW and alert the operator."""
    await repository.insert(scheduled("missed", -timedelta(minutes=30), appointment_notes="Intro"))
    await repository.insert(scheduled("grace", -timedelta(minutes=10)))

    first = await sweep.run()
    second = await sweep.run()

    assert first.breakdown[MISSED_APPOINTMENT] == 1
    assert second.breakdown[MISSED_APPOINTMENT] == 0
    missed = await stored(repository, "missed")
    assert missed.appointment_status == AppointmentStatus.NO_SHOW
    assert missed.appointment_notes == f"Intro\n{NO_SHOW_NOTE}"
    assert missed.last_appointment_update == NOW
    assert missed.auto_reminder_count == 0
    assert (await stored(repository, "grace")).appointment_status == AppointmentStatus.SCHEDULED
    assert [email[0] for email in sender.emails] == ["admin@example.com"]


@pytest.mark.asyncio
async def test_missed_appointment_without_admin_email(repository, sender):
    """Test the status still changes when the alert can't be sent."""
    sweep = build_sweep(repository, sender, admin_email="")
    await repository.insert(scheduled("missed", -timedelta(hours=1)))

    result = await sweep.run()

    assert result.breakdown[MISSED_APPOINTMENT] == 1
    assert result.errors[0].rule == MISSED_APPOINTMENT
    missed = await stored(repository, "missed")
    assert missed.appointment_status == AppointmentStatus.NO_SHOW


@pytest.mark.asyncio
async def test_stale_questionnaire_gets_one_follow_up(sweep, repository, sender):
    """Test unfinished conversations idle for a day are nudged once."""
    await repository.insert(
        make_contact("stale", conversation_responses=answered(25, georgia_location="yes"))
    )
    await repository.insert(
        make_contact("fresh", conversation_responses=answered(2, georgia_location="yes"))
    )
    await repository.insert(
        make_contact("done", conversation_responses=answered(48, georgia_location="no"))
    )

    first = await sweep.run()
    second = await sweep.run()

    assert first.breakdown[QUESTIONNAIRE_FOLLOWUP] == 1
    assert second.breakdown[QUESTIONNAIRE_FOLLOWUP] == 0
    assert len(sender.sms) == 1
    assert "Fit or Free" in sender.sms[0][1]
    contact = await stored(repository, "stale")
    assert contact.workflow_markers[QUESTIONNAIRE_FOLLOWUP] == NOW


@pytest.mark.asyncio
async def test_new_answer_allows_another_follow_up(sweep, repository):
    """Test a follow-up marker older than the latest answer doesn't suppress."""
    await repository.insert(
        make_contact(
            "c1",
            conversation_responses=answered(
                30, georgia_location="yes", fit_or_free_offer="yes"
            ),
            workflow_markers={QUESTIONNAIRE_FOLLOWUP: NOW - timedelta(hours=40)},
        )
    )

    result = await sweep.run()

    assert result.breakdown[QUESTIONNAIRE_FOLLOWUP] == 1


@pytest.mark.asyncio
async def test_failure_for_one_contact_does_not_stop_others(sweep, repository, monkeypatch):
    """Test per-contact errors are isolated."""
    await repository.insert(scheduled("bad", timedelta(hours=10)))
    await repository.insert(scheduled("good", timedelta(hours=12)))
    real_update = repository.update

    async def flaky_update(identifier, fields, expected_version=None):
        if identifier.value == "bad":
            raise StorageError("Failed to update contact")
        return await real_update(identifier, fields, expected_version)

    monkeypatch.setattr(repository, "update", flaky_update)

    result = await sweep.run()

    assert result.breakdown[APPOINTMENT_REMINDER_24H] == 1
    assert [(e.rule, e.contact_id) for e in result.errors] == [
        (APPOINTMENT_REMINDER_24H, "bad")
    ]


@pytest.mark.asyncio
async def test_failed_query_aborts_only_that_rule(sweep, repository, monkeypatch):
    """Test a failing rule query is reported and other rules still run."""
    await repository.insert(scheduled("missed", -timedelta(hours=1)))
    real_query = repository.query

    async def failing_reminder_query(contact_query):
        if contact_query.scheduled_from is not None:
            raise StorageError("Failed to query contacts")
        return await real_query(contact_query)

    monkeypatch.setattr(repository, "query", failing_reminder_query)

    result = await sweep.run()

    assert result.breakdown[MISSED_APPOINTMENT] == 1
    assert result.errors[0].rule == "send_reminders"
    assert result.errors[0].contact_id is None


@pytest.mark.asyncio
async def test_finished_conversations_do_not_starve_stale_ones(repository, sender):
    """Test paging reaches a stale conversation behind a full page of finished ones."""
    sweep = build_sweep(repository, sender, batch_size=2)
    await repository.insert(
        make_contact("done1", conversation_responses=answered(48, georgia_location="no"))
    )
    await repository.insert(
        make_contact("done2", conversation_responses=answered(47, georgia_location="no"))
    )
    await repository.insert(
        make_contact("stale", conversation_responses=answered(25, georgia_location="yes"))
    )

    result = await sweep.run()

    assert result.breakdown[QUESTIONNAIRE_FOLLOWUP] == 1
    assert [sms[0] for sms in sender.sms] == ["+14045550134"]
    contact = await stored(repository, "stale")
    assert contact.workflow_markers[QUESTIONNAIRE_FOLLOWUP] == NOW


@pytest.mark.asyncio
async def test_completed_conversations_are_left_out_of_the_follow_up_query(
    sweep, repository, monkeypatch
):
    """Test the follow-up query asks only for unfinished, idle conversations."""
    queries = []
    real_query = repository.query

    async def recording_query(contact_query):
        queries.append(contact_query)
        return await real_query(contact_query)

    monkeypatch.setattr(repository, "query", recording_query)
    await repository.insert(
        make_contact(
            "done",
            conversation_responses=answered(48, georgia_location="no"),
            conversation_complete=True,
        )
    )

    result = await sweep.run()

    follow_up = [q for q in queries if q.has_conversation]
    assert follow_up[0].conversation_complete is False
    assert follow_up[0].last_response_before == NOW - timedelta(hours=24)
    assert result.breakdown[QUESTIONNAIRE_FOLLOWUP] == 0


@pytest.mark.asyncio
async def test_reminders_page_through_every_upcoming_appointment(repository, sender):
    """Test reminders reach appointments beyond the first page."""
    sweep = build_sweep(repository, sender, batch_size=2)
    for index in range(5):
        await repository.insert(scheduled(f"c{index}", timedelta(hours=10 + index)))

    result = await sweep.run()

    assert result.breakdown[APPOINTMENT_REMINDER_24H] == 5
    assert len(sender.sms) == 5


@pytest.mark.asyncio
async def test_missed_rule_skips_over_failed_contacts(repository, sender, monkeypatch):
    """Test a contact that can't be marked doesn't block the rest of the pages."""
    sweep = build_sweep(repository, sender, batch_size=2)
    await repository.insert(scheduled("bad", -timedelta(hours=3)))
    await repository.insert(scheduled("m2", -timedelta(hours=2)))
    await repository.insert(scheduled("m3", -timedelta(hours=1)))
    real_update = repository.update

    async def flaky_update(identifier, fields, expected_version=None):
        if identifier.value == "bad":
            raise StorageError("Failed to update contact")
        return await real_update(identifier, fields, expected_version)

    monkeypatch.setattr(repository, "update", flaky_update)

    result = await sweep.run()

    assert result.breakdown[MISSED_APPOINTMENT] == 2
    assert [(e.rule, e.contact_id) for e in result.errors] == [(MISSED_APPOINTMENT, "bad")]
    assert (await stored(repository, "m3")).appointment_status == AppointmentStatus.NO_SHOW
    assert (await stored(repository, "bad")).appointment_status == AppointmentStatus.SCHEDULED


@pytest.mark.asyncio
async def test_raising_no_show_alert_is_recorded_per_contact(repository, sender, monkeypatch):
    """Test an alert that raises doesn't stop the remaining contacts."""
    notifier = ContactNotifier(sender, admin_email="admin@example.com", base_delay=0)
    sweep = ProcessWorkflows(repository, notifier, clock=lambda: NOW)
    await repository.insert(scheduled("first", -timedelta(hours=2)))
    await repository.insert(scheduled("second", -timedelta(hours=1)))
    real_alert = notifier.missed_appointment_alert

    async def exploding_alert(contact):
        if contact.id == "first":
            raise RuntimeError("template rendering failed")
        return await real_alert(contact)

    monkeypatch.setattr(notifier, "missed_appointment_alert", exploding_alert)

    result = await sweep.run()

    assert result.breakdown[MISSED_APPOINTMENT] == 2
    assert [(e.rule, e.contact_id, e.error) for e in result.errors] == [
        (MISSED_APPOINTMENT, "first", "template rendering failed")
    ]
    assert (await stored(repository, "second")).appointment_status == AppointmentStatus.NO_SHOW
    assert [email[0] for email in sender.emails] == ["admin@example.com"]
