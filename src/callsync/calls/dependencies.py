"""FastAPI dependencies for the call control API."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from callsync.calls.service import CallControlService
from callsync.shared.database import get_db_session
from callsync.telephony.config import TelephonyConfig
from callsync.telephony.factory import get_provider_gateway, get_telephony_config
from callsync.telephony.interface import ProviderGateway


def get_gateway() -> ProviderGateway:
    """Dependency returning the process-wide provider gateway."""
    return get_provider_gateway()


def get_call_control_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    gateway: Annotated[ProviderGateway, Depends(get_gateway)],
    config: Annotated[TelephonyConfig, Depends(get_telephony_config)],
) -> CallControlService:
    """Dependency for the call control service."""
    return CallControlService(session=session, gateway=gateway, config=config)


CallControlServiceDep = Annotated[CallControlService, Depends(get_call_control_service)]
