"""
Webhook replay for demos.

Replays canned provider events through the audit log and echoes them back.
Nothing is dispatched to downstream handlers.
"""
from __future__ import annotations

import copy
from typing import Dict, Any, TYPE_CHECKING

from .base import NotFoundError, require_provider

if TYPE_CHECKING:
    from ..services.audit_log import AuditLog

SAMPLE_EVENTS: Dict[str, Dict[str, Any]] = {
    "jira.ticket.updated": {
        "provider": "jira",
        "event": "ticket.updated",
        "external_id": "JRA-2031",
        "changes": {
            "status": "In Progress",
            "assignee": "alice",
        },
    },
    "servicenow.incident.resolved": {
        "provider": "servicenow",
        "event": "incident.resolved",
        "external_id": "INC-001234",
        "resolution": "Replaced faulty NIC",
    },
    "okta.user.provisioned": {
        "provider": "okta",
        "event": "user.provisioned",
        "external_id": "OKTA-REQ-1001",
        "result": "success",
    },
    "google.device.offline": {
        "provider": "google",
        "event": "device.offline",
        "external_id": "GWA-DEVICE-45",
        "last_seen": "2025-12-03T09:00:00Z",
    },
}


def describe_event(event: Dict[str, Any]) -> str:
    return f"{event['provider']} {event['event']}: {event['external_id']}"


class WebhookReplayer:
    """Looks up sample events and records each replay."""

    def __init__(self, audit_log: AuditLog):
        self.audit_log = audit_log

    async def replay(self, provider: str, sample_event_id: str) -> Dict[str, Any]:
        """Replay a sample event for ``provider``.

        Raises:
            UnknownProviderError: provider is not supported
            NotFoundError: no such sample event for this provider
        """
        resolved = require_provider(provider)

        event = SAMPLE_EVENTS.get(sample_event_id)
        if event is None or event["provider"] != resolved.value:
            raise NotFoundError("Sample event not found for provider", resolved.value)

        event = copy.deepcopy(event)
        await self.audit_log.append(
            resolved,
            "webhook.replay",
            details={"sampleEventId": sample_event_id, "event": event}
        )
        return event
