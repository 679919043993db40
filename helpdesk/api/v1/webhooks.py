from fastapi import APIRouter, Depends
from typing import Optional
from pydantic import BaseModel

from ..deps import get_webhook_replayer
from ...integrations.base import ValidationError
from ...integrations.webhooks import WebhookReplayer, describe_event

router = APIRouter()


class ReplayRequest(BaseModel):
    provider: Optional[str] = None
    sampleEventId: Optional[str] = None


@router.post("/replay")
async def replay_webhook(
    request: ReplayRequest,
    replayer: WebhookReplayer = Depends(get_webhook_replayer)
):
    """
    Replay a canned provider event (demo only).

    The event is recorded in the provider audit log and echoed back; it is
    not dispatched to any handler.
    """

    if not request.provider or not request.sampleEventId:
        raise ValidationError("provider and sampleEventId are required")

    event = await replayer.replay(request.provider, request.sampleEventId)
    description = describe_event(event)

    return {
        "success": True,
        "provider": event["provider"],
        "event": event,
        "externalId": event["external_id"],
        "message": f"Webhook replayed: {description}",
    }
