"""HTTP routes."""

import hmac
from datetime import datetime
from typing import Optional
from uuid import uuid4

from fastapi import (
    APIRouter,
    Depends,
    Form,
    Header,
    HTTPException,
    Query,
    Request,
    Response,
    status,
)

from practice_crm.adapters.inbound.http.errors import error_response
from practice_crm.adapters.inbound.http.schemas import (
    AppointmentChangeResponse,
    AppointmentListResponse,
    AppointmentStatusRequest,
    AvailableSlotsResponse,
    BookedSlotsResponse,
    CancelAppointmentRequest,
    CaptureContactResponse,
    ConversationRespondRequest,
    ConversationStateRequest,
    ConversationStateResponse,
    ScheduleAppointmentRequest,
    WorkflowSweepResponse,
)
from practice_crm.adapters.inbound.http.twilio_utils import (
    generate_twiml_response,
    is_valid_twilio_signature,
)
from practice_crm.application.dtos.appointment import AppointmentChange, AppointmentFilter
from practice_crm.application.dtos.contact import BookingRequest
from practice_crm.application.ports.idempotency_store import IdempotencyStore
from practice_crm.application.use_cases.capture_contact import CaptureContact
from practice_crm.application.use_cases.check_availability import CheckAvailability
from practice_crm.application.use_cases.conversation_flow import ConversationFlow
from practice_crm.application.use_cases.manage_appointment import ManageAppointment
from practice_crm.application.use_cases.process_workflows import ProcessWorkflows
from practice_crm.application.use_cases.user_messages_en import UserMessagesEN
from practice_crm.domain.entities.contact import AppointmentStatus
from practice_crm.domain.errors import InvalidInputError
from practice_crm.infrastructure.config.settings import Settings
from practice_crm.infrastructure.logging.logger import log_event, logger
from practice_crm.infrastructure.wiring.dependencies import (
    get_capture_contact,
    get_check_availability,
    get_conversation_flow,
    get_idempotency_store,
    get_manage_appointment,
    get_process_workflows,
    get_settings,
)

router = APIRouter()


def _change_response(change: AppointmentChange) -> AppointmentChangeResponse:
    return AppointmentChangeResponse(
        changed=change.changed,
        partial_success=change.partial_success,
        contact=change.contact,
        notifications=change.notifications,
    )


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> dict[str, str]:
    """
    Health check endpoint for liveness/readiness.

    Returns:
        Health status
    """
    return {"status": "ok"}


@router.post("/contacts", response_model=CaptureContactResponse)
async def capture_contact(
    request: BookingRequest,
    use_case: CaptureContact = Depends(get_capture_contact),
) -> CaptureContactResponse:
    """
    Capture a booking or contact form submission.

    Args:
        request: Name, email, phone and an optional slot

    Returns:
        The stored contact and any confirmation outcomes
    """
    result = await use_case.execute(request)
    return CaptureContactResponse(
        created=result.created,
        partial_success=any(not outcome.success for outcome in result.notifications),
        contact=result.contact,
        notifications=result.notifications,
    )


@router.post("/appointments/schedule", response_model=AppointmentChangeResponse)
async def schedule_appointment(
    request: ScheduleAppointmentRequest,
    use_case: ManageAppointment = Depends(get_manage_appointment),
) -> AppointmentChangeResponse:
    """Schedule or reschedule an appointment."""
    change = await use_case.schedule(request.identifier(), request.scheduled_at, request.time_zone)
    return _change_response(change)


@router.post("/appointments/cancel", response_model=AppointmentChangeResponse)
async def cancel_appointment(
    request: CancelAppointmentRequest,
    use_case: ManageAppointment = Depends(get_manage_appointment),
) -> AppointmentChangeResponse:
    """Cancel an appointment (idempotent)."""
    change = await use_case.cancel(request.identifier(), request.reason)
    return _change_response(change)


@router.patch("/appointments/status", response_model=AppointmentChangeResponse)
async def update_appointment_status(
    request: AppointmentStatusRequest,
    use_case: ManageAppointment = Depends(get_manage_appointment),
) -> AppointmentChangeResponse:
    """Set the appointment status from administrative tooling."""
    change = await use_case.set_status(request.identifier(), request.status, request.notes)
    return _change_response(change)


@router.get("/appointments/available-slots", response_model=AvailableSlotsResponse)
async def available_slots(
    use_case: CheckAvailability = Depends(get_check_availability),
) -> AvailableSlotsResponse:
    """Earliest open session today and tomorrow."""
    slots = await use_case.pull_forward_slots()
    return AvailableSlotsResponse(today=slots.today, tomorrow=slots.tomorrow)


@router.get("/appointments/booked-slots", response_model=BookedSlotsResponse)
async def booked_slots(
    start: datetime,
    end: datetime,
    use_case: CheckAvailability = Depends(get_check_availability),
) -> BookedSlotsResponse:
    """
    List the time held by scheduled appointments.

    Args:
        start: Window start (ISO 8601)
        end: Window end (ISO 8601)

    Returns:
        Booked slots, earliest first
    """
    slots = await use_case.booked_slots(start, end)
    return BookedSlotsResponse(booked_slots=slots, count=len(slots))


@router.get("/appointments", response_model=AppointmentListResponse)
async def list_appointments(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    upcoming: bool = False,
    limit: int = Query(default=50, ge=1),
    use_case: ManageAppointment = Depends(get_manage_appointment),
) -> AppointmentListResponse:
    """
    List appointments, earliest first.

    Args:
        status_filter: Optional status (case-insensitive)
        upcoming: Only appointments at or after now
        limit: Maximum results

    Returns:
        Appointment summaries
    """
    appointment_filter = AppointmentFilter(
        status=AppointmentStatus.parse(status_filter) if status_filter else None,
        upcoming_only=upcoming,
        limit=limit,
    )
    appointments = await use_case.list_appointments(appointment_filter)
    return AppointmentListResponse(appointments=appointments, count=len(appointments))


@router.post("/conversation/state", response_model=ConversationStateResponse)
async def conversation_state(
    request: ConversationStateRequest,
    use_case: ConversationFlow = Depends(get_conversation_flow),
) -> ConversationStateResponse:
    """Get the derived conversation state of a contact."""
    state = await use_case.get_state(request.identifier())
    return ConversationStateResponse(conversation_state=state)


@router.post("/conversation/respond", response_model=ConversationStateResponse)
async def conversation_respond(
    request: ConversationRespondRequest,
    use_case: ConversationFlow = Depends(get_conversation_flow),
) -> ConversationStateResponse:
    """Record an answer; without questionId it answers the current question."""
    identifier = request.identifier()
    question_id = request.question_id
    if not question_id:
        current = await use_case.get_state(identifier)
        if current.complete:
            raise InvalidInputError("Conversation is already complete")
        question_id = current.next
    state = await use_case.record_response(
        identifier,
        question_id,
        request.response,
        response_value=request.response_value,
        question=request.question,
    )
    return ConversationStateResponse(conversation_state=state)


@router.post("/sms/webhook")
async def sms_webhook(
    request: Request,
    From: str = Form(...),
    Body: str = Form(""),
    MessageSid: Optional[str] = Form(None),
    app_settings: Settings = Depends(get_settings),
    use_case: ConversationFlow = Depends(get_conversation_flow),
    idempotency_store: IdempotencyStore = Depends(get_idempotency_store),
) -> Response:
    """
    Handle inbound SMS webhook requests from Twilio.

    Accepts form-encoded data and returns a TwiML reply. Redeliveries of the
    same MessageSid get the stored reply without being processed again.

    Args:
        request: FastAPI request object (for signature validation)
        From: Sender phone number
        Body: Message text
        MessageSid: Twilio message SID

    Returns:
        TwiML XML response
    """
    if app_settings.twilio_validate_signature:
        if not app_settings.twilio_auth_token:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Twilio signature validation enabled but TWILIO_AUTH_TOKEN not configured",
            )
        form_data = {key: str(value) for key, value in (await request.form()).items()}
        signature = request.headers.get("X-Twilio-Signature", "")
        if not is_valid_twilio_signature(
            app_settings.twilio_auth_token, str(request.url), form_data, signature
        ):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid Twilio signature",
            )

    request_id = str(uuid4())
    log_event("sms_webhook", request_id=request_id, message_sid=MessageSid, body_length=len(Body))

    claimed = False
    if MessageSid and app_settings.sms_idempotency_enabled:
        claimed = await idempotency_store.claim(
            MessageSid, app_settings.sms_idempotency_ttl_seconds
        )
        if not claimed:
            stored = await idempotency_store.get_reply(MessageSid)
            log_event("sms_webhook", request_id=request_id, duplicate=True)
            return Response(
                content=stored or generate_twiml_response(UserMessagesEN.DUPLICATE_DELIVERY_REPLY),
                media_type="application/xml",
            )
    elif MessageSid is None and app_settings.sms_idempotency_enabled:
        logger.warning("MessageSid missing in SMS webhook request but idempotency is enabled")

    try:
        reply = await use_case.handle_inbound_sms(From, Body)
    except Exception:
        if claimed:
            # Let Twilio's retry be processed
            await idempotency_store.release(MessageSid)
        raise

    twiml = generate_twiml_response(reply)
    if claimed:
        await idempotency_store.save_reply(
            MessageSid, twiml, app_settings.sms_idempotency_ttl_seconds
        )
    log_event("sms_webhook", request_id=request_id, reply_length=len(reply))
    return Response(content=twiml, media_type="application/xml")


@router.api_route(
    "/cron/process-workflows",
    methods=["GET", "POST"],
    response_model=WorkflowSweepResponse,
)
async def process_workflows(
    authorization: Optional[str] = Header(default=None),
    app_settings: Settings = Depends(get_settings),
    use_case: ProcessWorkflows = Depends(get_process_workflows),
):
    """
    Run one workflow sweep; called by an external scheduler.

    Args:
        authorization: 'Bearer <CRON_SECRET>'

    Returns:
        Sweep summary, 401 on a bad secret, 500 when no secret is configured
    """
    if not app_settings.cron_secret:
        logger.error("CRON_SECRET is not configured")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Cron secret not configured")
    expected = f"Bearer {app_settings.cron_secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        return error_response(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

    result = await use_case.run()
    return WorkflowSweepResponse(
        success=True,
        total_processed=result.total_processed,
        breakdown=result.breakdown,
        errors=result.errors,
        processing_time_ms=result.processing_time_ms,
    )
