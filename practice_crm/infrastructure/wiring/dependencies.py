"""Dependency injection factory functions.

Adapters are built once per process (lru_cache); use cases are cheap and
built per request from their FastAPI dependencies, so tests can swap any
adapter through app.dependency_overrides.
"""

from datetime import timedelta
from functools import lru_cache

from fastapi import Depends

from practice_crm.adapters.outbound.contact import (
    InMemoryContactRepository,
    PostgresContactRepository,
)
from practice_crm.adapters.outbound.idempotency.noop_idempotency_store import NoOpIdempotencyStore
from practice_crm.adapters.outbound.idempotency.redis_idempotency_store import RedisIdempotencyStore
from practice_crm.adapters.outbound.notification import (
    HttpNotificationSender,
    LoggingNotificationSender,
)
from practice_crm.application.ports.contact_repository import ContactRepository
from practice_crm.application.ports.idempotency_store import IdempotencyStore
from practice_crm.application.ports.notification_sender import NotificationSender
from practice_crm.application.use_cases.capture_contact import CaptureContact
from practice_crm.application.use_cases.check_availability import CheckAvailability
from practice_crm.application.use_cases.contact_notifier import ContactNotifier
from practice_crm.application.use_cases.conversation_flow import ConversationFlow
from practice_crm.application.use_cases.manage_appointment import ManageAppointment
from practice_crm.application.use_cases.process_workflows import ProcessWorkflows
from practice_crm.domain.availability import BusinessHours
from practice_crm.infrastructure.config.settings import Settings, settings


def get_settings() -> Settings:
    """
    Get application settings.

    Returns:
        Settings instance
    """
    return settings


@lru_cache
def get_contact_repository() -> ContactRepository:
    """
    Factory function to create the contact repository.

    Returns:
        ContactRepository instance
    """
    if settings.contact_repository == "postgres":
        if not settings.database_url:
            raise ValueError("DATABASE_URL is required when CONTACT_REPOSITORY=postgres")
        return PostgresContactRepository()
    return InMemoryContactRepository()


@lru_cache
def get_notification_sender() -> NotificationSender:
    """
    Factory function to create the notification sender.

    Returns:
        HttpNotificationSender when delivery is enabled, LoggingNotificationSender otherwise
    """
    if not settings.notifications_enabled:
        return LoggingNotificationSender()
    return HttpNotificationSender(
        twilio_account_sid=settings.twilio_account_sid,
        twilio_auth_token=settings.twilio_auth_token,
        twilio_phone_number=settings.twilio_phone_number,
        resend_api_key=settings.resend_api_key,
        email_from=settings.email_from,
        timeout_seconds=settings.notification_timeout_seconds,
    )


@lru_cache
def get_idempotency_store() -> IdempotencyStore:
    """
    Factory function to create the SMS webhook idempotency store.

    Returns:
        IdempotencyStore instance (Redis or NoOp)
    """
    if not settings.sms_idempotency_enabled or not settings.redis_url:
        return NoOpIdempotencyStore()
    return RedisIdempotencyStore(settings.redis_url)


def get_contact_notifier(
    sender: NotificationSender = Depends(get_notification_sender),
    app_settings: Settings = Depends(get_settings),
) -> ContactNotifier:
    """
    Build the contact notifier.

    Returns:
        ContactNotifier instance
    """
    return ContactNotifier(
        sender,
        admin_email=app_settings.admin_email,
        site_url=app_settings.site_url,
        display_time_zone=app_settings.display_time_zone,
        max_attempts=app_settings.notification_max_attempts,
        base_delay=app_settings.notification_base_delay_seconds,
    )


def get_check_availability(
    repository: ContactRepository = Depends(get_contact_repository),
    app_settings: Settings = Depends(get_settings),
) -> CheckAvailability:
    """
    Build the availability use case.

    Returns:
        CheckAvailability instance
    """
    hours = BusinessHours(
        time_zone=app_settings.display_time_zone,
        start_hour=app_settings.business_day_start_hour,
        end_hour=app_settings.business_day_end_hour,
        session=timedelta(minutes=app_settings.session_minutes),
    )
    return CheckAvailability(repository, hours)


def get_manage_appointment(
    repository: ContactRepository = Depends(get_contact_repository),
    notifier: ContactNotifier = Depends(get_contact_notifier),
    availability: CheckAvailability = Depends(get_check_availability),
    app_settings: Settings = Depends(get_settings),
) -> ManageAppointment:
    """
    Build the appointment use case.

    Returns:
        ManageAppointment instance
    """
    return ManageAppointment(
        repository,
        notifier,
        max_list_limit=app_settings.appointment_list_limit,
        availability=availability,
    )


def get_capture_contact(
    repository: ContactRepository = Depends(get_contact_repository),
    appointments: ManageAppointment = Depends(get_manage_appointment),
) -> CaptureContact:
    """
    Build the contact capture use case.

    Returns:
        CaptureContact instance
    """
    return CaptureContact(repository, appointments)


def get_conversation_flow(
    repository: ContactRepository = Depends(get_contact_repository),
    availability: CheckAvailability = Depends(get_check_availability),
    appointments: ManageAppointment = Depends(get_manage_appointment),
) -> ConversationFlow:
    """
    Build the conversation use case.

    Returns:
        ConversationFlow instance
    """
    return ConversationFlow(repository, availability=availability, appointments=appointments)


def get_process_workflows(
    repository: ContactRepository = Depends(get_contact_repository),
    notifier: ContactNotifier = Depends(get_contact_notifier),
    app_settings: Settings = Depends(get_settings),
) -> ProcessWorkflows:
    """
    Build the workflow sweep use case.

    Returns:
        ProcessWorkflows instance
    """
    return ProcessWorkflows(
        repository,
        notifier,
        missed_grace=timedelta(minutes=app_settings.missed_appointment_grace_minutes),
        questionnaire_stale_after=timedelta(hours=app_settings.questionnaire_stale_hours),
    )
