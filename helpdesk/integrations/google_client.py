from __future__ import annotations

from typing import Dict, Any

from .base import BaseConnector
from .providers import IntegrationProvider

SAMPLE_USER = "GWA-USER-123"


class GoogleClient(BaseConnector):
    """Google Workspace connector (demo only)."""

    provider = IntegrationProvider.GOOGLE
    sample_key = "sample_user"
    sample_value = SAMPLE_USER
    test_message = "Demo Google Workspace connected successfully."

    async def check_device(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Canned managed-device status lookup."""
        await self.audit_log.append(self.provider, "demo.check_device", details=payload)

        return {
            "device_status": "online",
            "last_sync": "2025-12-03T10:00:00Z",
            "os": "macOS 14.2",
        }
