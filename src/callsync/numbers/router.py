"""
Phone numbers API router.
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from callsync.auth.middleware import CurrentUserDep
from callsync.calls.dependencies import get_gateway
from callsync.numbers.service import NumberVoiceService
from callsync.shared.database import get_db_session
from callsync.telephony.config import TelephonyConfig
from callsync.telephony.factory import get_telephony_config
from callsync.telephony.interface import ProviderGateway

router = APIRouter(prefix="/numbers", tags=["numbers"])


class PhoneNumberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    phone_number: str
    provider_number_id: str | None
    connection_id: str | None
    created_at: datetime


def get_number_voice_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    gateway: Annotated[ProviderGateway, Depends(get_gateway)],
    config: Annotated[TelephonyConfig, Depends(get_telephony_config)],
) -> NumberVoiceService:
    """Dependency for the number voice service."""
    return NumberVoiceService(session=session, gateway=gateway, config=config)


@router.get("", response_model=list[PhoneNumberResponse])
async def list_numbers(
    current_user: CurrentUserDep,
    service: Annotated[NumberVoiceService, Depends(get_number_voice_service)],
) -> list[PhoneNumberResponse]:
    numbers = await service.list_numbers(current_user.id)
    return [PhoneNumberResponse.model_validate(n) for n in numbers]


@router.post("/{number_id}/voice", response_model=PhoneNumberResponse)
async def enable_voice(
    number_id: UUID,
    current_user: CurrentUserDep,
    service: Annotated[NumberVoiceService, Depends(get_number_voice_service)],
) -> PhoneNumberResponse:
    """Attach the number to the voice connection so it can place calls."""
    number = await service.enable_voice(current_user.id, number_id)
    return PhoneNumberResponse.model_validate(number)
