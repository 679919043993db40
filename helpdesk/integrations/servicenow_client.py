from __future__ import annotations

from typing import Dict, Any, TYPE_CHECKING

from .base import BaseConnector, PreconditionError
from .providers import IntegrationProvider

if TYPE_CHECKING:
    from ..models.integration import IntegrationRecord

SAMPLE_INCIDENT = "INC-001234"
SAMPLE_INCIDENT_URL = f"https://servicenow.example.com/incident/{SAMPLE_INCIDENT}"


class ServiceNowClient(BaseConnector):
    """
    ServiceNow connector.

    Two connect paths:
    - demo: always succeeds
    - real: needs saved instance credentials and an access token from a
      completed OAuth exchange
    """

    provider = IntegrationProvider.SERVICENOW
    sample_key = "sample_incident"
    sample_value = SAMPLE_INCIDENT
    test_message = "Demo ServiceNow connected successfully."

    def check_real_preconditions(self, record: IntegrationRecord) -> None:
        if not record.instance_url or not record.client_id:
            raise PreconditionError(
                "Credentials not found. Please save credentials first.",
                self.name
            )
        super().check_real_preconditions(record)

    async def create_incident(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Demo incident creation: logs the payload and returns a canned incident."""
        await self.audit_log.append(
            self.provider,
            "demo.create_incident",
            details={"external_id": SAMPLE_INCIDENT, "payload": payload}
        )
        self._logger.info("Demo ServiceNow incident %s created", SAMPLE_INCIDENT)

        return {
            "external_id": SAMPLE_INCIDENT,
            "status": "created",
            "url": SAMPLE_INCIDENT_URL,
        }
