from __future__ import annotations

from typing import Dict, Type, Union, TYPE_CHECKING

from .base import BaseConnector, require_provider
from .google_client import GoogleClient
from .jira_client import JiraClient
from .okta_client import OktaClient
from .providers import IntegrationProvider
from .servicenow_client import ServiceNowClient

if TYPE_CHECKING:
    from ..services.audit_log import AuditLog
    from ..services.integration_store import IntegrationStore

CONNECTORS: Dict[IntegrationProvider, Type[BaseConnector]] = {
    IntegrationProvider.JIRA: JiraClient,
    IntegrationProvider.SERVICENOW: ServiceNowClient,
    IntegrationProvider.OKTA: OktaClient,
    IntegrationProvider.GOOGLE: GoogleClient,
}

_missing = set(IntegrationProvider) - set(CONNECTORS)
if _missing:
    raise RuntimeError(f"No connector registered for: {sorted(p.value for p in _missing)}")


def get_connector(
    provider: Union[IntegrationProvider, str],
    store: IntegrationStore,
    audit_log: AuditLog
) -> BaseConnector:
    """Build the connector for ``provider``.

    Raises:
        UnknownProviderError: provider is not in the supported set
    """
    resolved = require_provider(provider) if isinstance(provider, str) else provider
    return CONNECTORS[resolved](store, audit_log)
