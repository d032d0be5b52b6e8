"""Structured logger for observability."""

import logging
from typing import Any, Optional

_logger = logging.getLogger("practice_crm")
_logger.setLevel(logging.INFO)

if not _logger.handlers:
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    _logger.addHandler(handler)


def log_event(
    component: str,
    contact_id: Optional[str] = None,
    request_id: Optional[str] = None,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """
    Log a structured event.

    Args:
        component: Component name (e.g., 'http', 'appointment', 'workflow')
        contact_id: Contact identifier, if the event concerns one contact
        request_id: Request identifier for correlation
        level: Log level (default: INFO)
        **kwargs: Additional structured fields to log
    """
    fields: dict[str, Any] = {"component": component}
    if contact_id is not None:
        fields["contact_id"] = contact_id
    if request_id is not None:
        fields["request_id"] = request_id
    fields.update(kwargs)

    # key=value pairs for readability
    log_message = " | ".join(f"{k}={v!r}" for k, v in fields.items())
    _logger.log(level, log_message)


def log_appointment_transition(
    contact_id: str,
    status_before: Optional[str],
    status_after: Optional[str],
    **kwargs: Any,
) -> None:
    """
    Log an appointment status transition.

    Args:
        contact_id: Contact identifier
        status_before: Previous appointment status
        status_after: New appointment status
        **kwargs: Additional fields
    """
    log_event(
        "appointment",
        contact_id=contact_id,
        status_before=status_before,
        status_after=status_after,
        **kwargs,
    )


def log_conversation_step(
    contact_id: str,
    question_id: str,
    next_question: str,
    **kwargs: Any,
) -> None:
    """
    Log a recorded conversation answer.

    Args:
        contact_id: Contact identifier
        question_id: Answered question
        next_question: Next question id, or 'complete'
        **kwargs: Additional fields
    """
    log_event(
        "conversation",
        contact_id=contact_id,
        question_id=question_id,
        next_question=next_question,
        **kwargs,
    )


def log_workflow_rule(
    rule: str,
    contact_id: str,
    fired: bool,
    **kwargs: Any,
) -> None:
    """
    Log a workflow rule evaluation for one contact.

    Args:
        rule: Rule name
        contact_id: Contact identifier
        fired: Whether the rule's action completed
        **kwargs: Additional fields
    """
    log_event(
        "workflow",
        contact_id=contact_id,
        level=logging.INFO if fired else logging.WARNING,
        rule=rule,
        fired=fired,
        **kwargs,
    )


def log_notification(
    channel: str,
    success: bool,
    attempts: int,
    contact_id: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """
    Log the outcome of a notification send.

    Args:
        channel: 'sms' or 'email'
        success: Whether delivery was accepted by the provider
        attempts: Number of attempts made
        contact_id: Contact identifier, if any
        **kwargs: Additional fields
    """
    log_event(
        "notification",
        contact_id=contact_id,
        level=logging.INFO if success else logging.WARNING,
        channel=channel,
        success=success,
        attempts=attempts,
        **kwargs,
    )


logger = _logger
