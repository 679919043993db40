"""
Provider integrations for the IT helpdesk.

- Jira, ServiceNow, Okta, Google Workspace connectors
- OAuth handshake handling (ServiceNow, Jira) in ``oauth_handlers``
- Webhook replay for demos
"""

from .base import (
    BaseConnector,
    IntegrationError,
    ValidationError,
    UnknownProviderError,
    NotFoundError,
    PreconditionError,
    ConfigurationError,
    IntegrityError,
    UpstreamError,
)
from .providers import IntegrationProvider, IntegrationMode, GrantType, PROVIDER_SPECS
from .registry import get_connector
from .webhooks import WebhookReplayer, SAMPLE_EVENTS
# OAuthHandlers is imported from .oauth_handlers directly; it depends on
# core.security, which depends on this package.

__all__ = [
    "BaseConnector",
    "IntegrationError",
    "ValidationError",
    "UnknownProviderError",
    "NotFoundError",
    "PreconditionError",
    "ConfigurationError",
    "IntegrityError",
    "UpstreamError",
    "IntegrationProvider",
    "IntegrationMode",
    "GrantType",
    "PROVIDER_SPECS",
    "get_connector",
    "WebhookReplayer",
    "SAMPLE_EVENTS",
]
