"""
Call control API router.

All endpoints act on behalf of the authenticated user. Domain exceptions
raised by the service are mapped to HTTP responses by the application's
exception handlers.
"""

from fastapi import APIRouter, status

from callsync.auth.middleware import CurrentUserDep
from callsync.calls.dependencies import CallControlServiceDep
from callsync.calls.schemas import (
    CallActionResponse,
    CallRecordResponse,
    DTMFRequest,
    OutboundCallRequest,
)
from callsync.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/voice", tags=["voice"])

_ERROR_RESPONSES = {
    400: {"description": "Invalid input"},
    404: {"description": "Call or number not found"},
    502: {"description": "Telephony provider failure"},
}


@router.post(
    "/calls/outbound",
    response_model=CallRecordResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_ERROR_RESPONSES, 409: {"description": "Voice not enabled on number"}},
)
async def initiate_outbound_call(
    body: OutboundCallRequest,
    current_user: CurrentUserDep,
    service: CallControlServiceDep,
) -> CallRecordResponse:
    """Place an outbound call from one of the caller's numbers."""
    logger.info(
        "Outbound call requested",
        extra={"user_id": str(current_user.id), "to": body.to},
    )
    record = await service.initiate_outbound_call(current_user.id, body.from_number, body.to)
    return CallRecordResponse.model_validate(record)


@router.post(
    "/calls/{call_control_id}/answer",
    response_model=CallActionResponse,
    responses=_ERROR_RESPONSES,
)
async def answer_call(
    call_control_id: str,
    current_user: CurrentUserDep,
    service: CallControlServiceDep,
) -> CallActionResponse:
    await service.answer_call(current_user.id, call_control_id)
    return CallActionResponse(call_control_id=call_control_id, action="answer")


@router.post(
    "/calls/{call_control_id}/hangup",
    response_model=CallActionResponse,
    responses=_ERROR_RESPONSES,
)
async def hangup_call(
    call_control_id: str,
    current_user: CurrentUserDep,
    service: CallControlServiceDep,
) -> CallActionResponse:
    await service.hangup_call(current_user.id, call_control_id)
    return CallActionResponse(call_control_id=call_control_id, action="hangup")


@router.post(
    "/calls/{call_control_id}/decline",
    response_model=CallActionResponse,
    responses=_ERROR_RESPONSES,
)
async def decline_call(
    call_control_id: str,
    current_user: CurrentUserDep,
    service: CallControlServiceDep,
) -> CallActionResponse:
    await service.decline_call(current_user.id, call_control_id)
    return CallActionResponse(call_control_id=call_control_id, action="decline")


@router.post(
    "/calls/{call_control_id}/dtmf",
    response_model=CallActionResponse,
    responses=_ERROR_RESPONSES,
)
async def send_dtmf(
    call_control_id: str,
    body: DTMFRequest,
    current_user: CurrentUserDep,
    service: CallControlServiceDep,
) -> CallActionResponse:
    await service.send_dtmf(current_user.id, call_control_id, body.digits)
    return CallActionResponse(call_control_id=call_control_id, action="dtmf")


@router.post(
    "/calls/{call_control_id}/connect-webrtc",
    response_model=CallActionResponse,
    responses=_ERROR_RESPONSES,
)
async def connect_webrtc(
    call_control_id: str,
    current_user: CurrentUserDep,
    service: CallControlServiceDep,
) -> CallActionResponse:
    """Bridge the call's media to the caller's browser."""
    await service.connect_to_media(current_user.id, call_control_id)
    return CallActionResponse(call_control_id=call_control_id, action="connect-webrtc")


@router.get("/logs", response_model=list[CallRecordResponse])
async def list_call_logs(
    current_user: CurrentUserDep,
    service: CallControlServiceDep,
) -> list[CallRecordResponse]:
    """The caller's 100 most recent call records, newest first."""
    records = await service.list_call_logs(current_user.id)
    return [CallRecordResponse.model_validate(r) for r in records]
