from __future__ import annotations

from typing import Dict, Any, List, Optional

from pydantic import BaseModel, Field

from .base import BaseConnector
from .providers import IntegrationProvider

SAMPLE_USER = "OKTA-UID-12"
SAMPLE_PROVISION_REQUEST = "OKTA-REQ-1001"


class OktaProvisionRequest(BaseModel):
    """Access request to provision a user into groups."""

    username: Optional[str] = None
    groups: List[str] = Field(default_factory=list)
    duration: Optional[str] = None


class OktaClient(BaseConnector):
    """Okta connector (demo only)."""

    provider = IntegrationProvider.OKTA
    sample_key = "sample_user"
    sample_value = SAMPLE_USER
    test_message = "Demo Okta connected successfully."

    async def provision_user(self, request: OktaProvisionRequest) -> Dict[str, Any]:
        await self.audit_log.append(
            self.provider,
            "demo.provision_user",
            details={
                "username": request.username,
                "groups": request.groups,
                "duration": request.duration,
                "external_id": SAMPLE_PROVISION_REQUEST,
            }
        )

        return {
            "status": "provisioned",
            "external_id": SAMPLE_PROVISION_REQUEST,
            "message": "Provisioning started (demo)",
        }
