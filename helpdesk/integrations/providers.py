"""
Closed set of supported providers and what each one can do.

Connectors branch on the capability flags declared here instead of
comparing provider names.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class IntegrationProvider(str, Enum):
    JIRA = "jira"
    SERVICENOW = "servicenow"
    OKTA = "okta"
    GOOGLE = "google"

    @classmethod
    def from_value(cls, value: object) -> Optional[IntegrationProvider]:
        """Return the provider for ``value`` or None when it is not supported."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class IntegrationMode(str, Enum):
    DEMO = "demo"
    REAL = "real"

    @classmethod
    def from_request(cls, value: object) -> IntegrationMode:
        # Anything other than an explicit "real" is a demo request
        return cls.REAL if value == cls.REAL.value else cls.DEMO


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class GrantType(str, Enum):
    AUTHORIZATION_CODE = "authorization_code"
    CLIENT_CREDENTIALS = "client_credentials"


@dataclass(frozen=True)
class ProviderSpec:
    """Static description and capabilities of a provider."""

    provider: IntegrationProvider
    name: str
    description: str
    supports_oauth: bool = False
    demo_only: bool = True
    # Client credentials are saved per install instead of read from settings
    stores_client_credentials: bool = False


PROVIDER_SPECS: Dict[IntegrationProvider, ProviderSpec] = {
    IntegrationProvider.JIRA: ProviderSpec(
        provider=IntegrationProvider.JIRA,
        name="Jira",
        description="Create and sync helpdesk tickets as Jira issues.",
        supports_oauth=True,
        demo_only=False,
    ),
    IntegrationProvider.SERVICENOW: ProviderSpec(
        provider=IntegrationProvider.SERVICENOW,
        name="ServiceNow",
        description="Raise and track incidents in ServiceNow.",
        supports_oauth=True,
        demo_only=False,
        stores_client_credentials=True,
    ),
    IntegrationProvider.OKTA: ProviderSpec(
        provider=IntegrationProvider.OKTA,
        name="Okta",
        description="Provision users and groups for access requests.",
    ),
    IntegrationProvider.GOOGLE: ProviderSpec(
        provider=IntegrationProvider.GOOGLE,
        name="Google Workspace",
        description="Check managed device status for employees.",
    ),
}


def get_provider_spec(provider: IntegrationProvider) -> ProviderSpec:
    return PROVIDER_SPECS[provider]
