"""
FastAPI router for provider voice webhooks.

The provider retries non-2xx deliveries, so this endpoint always answers
``200 {"received": true}``: malformed bodies, unknown calls and internal
failures are logged, never surfaced.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status

from callsync.realtime.dependencies import PushHubDep
from callsync.shared.database import DatabaseManager, get_database_manager
from callsync.shared.logging import get_logger
from callsync.telephony.events import parse_voice_event
from callsync.telephony.interface import WebhookParseError
from callsync.telephony.webhooks.handler import WebhookReconciler

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

ACK: dict[str, Any] = {"received": True}


@router.post("/voice", status_code=status.HTTP_200_OK)
async def receive_voice_event(
    request: Request,
    database: Annotated[DatabaseManager, Depends(get_database_manager)],
    hub: PushHubDep,
) -> dict[str, Any]:
    """Receive one provider call event and reconcile it."""
    try:
        body = await request.json()
    except ValueError:
        logger.warning("Voice webhook body is not valid JSON (ACKing 200)")
        return ACK

    try:
        event = parse_voice_event(body)
    except WebhookParseError as e:
        logger.warning("Voice webhook ignored (ACKing 200)", extra={"reason": str(e)})
        return ACK
    except Exception:
        logger.exception("Voice webhook body could not be parsed (ACKing 200)")
        return ACK

    if event is None:
        data = body.get("data") if isinstance(body, dict) else None
        logger.info(
            "Voice webhook event type not handled",
            extra={"event_type": data.get("event_type") if isinstance(data, dict) else None},
        )
        return ACK

    try:
        # Own unit of work: a failed commit must not turn into a non-200 response
        async with database.session() as session:
            reconciler = WebhookReconciler(session=session, push_hub=hub)
            await reconciler.handle_event(event)
    except Exception:
        logger.exception(
            "Failed to process voice webhook (ACKing 200)",
            extra={
                "event_type": event.event_type.value,
                "external_id": str(event.external_id),
            },
        )

    return ACK
