"""
FastAPI dependencies shared by the v1 routers.

Everything that touches the database is built per request from the
session yielded by ``get_db``.
"""
from typing import Optional

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..core.security import CredentialCipher
from ..database import get_db
from ..integrations.base import BaseConnector, require_provider
from ..integrations.oauth_handlers import OAuthHandlers
from ..integrations.providers import IntegrationProvider
from ..integrations.registry import get_connector
from ..integrations.webhooks import WebhookReplayer
from ..services.audit_log import AuditLog
from ..services.integration_store import IntegrationStore


def resolve_provider(provider: str) -> IntegrationProvider:
    """Path parameter -> provider; unknown values are a 400."""
    return require_provider(provider)


def get_store(db: AsyncSession = Depends(get_db)) -> IntegrationStore:
    return IntegrationStore(db)


def get_audit_log(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings)
) -> AuditLog:
    return AuditLog(
        db,
        default_limit=settings.audit_log_default_limit,
        max_limit=settings.audit_log_max_limit
    )


def get_cipher(settings: Settings = Depends(get_settings)) -> CredentialCipher:
    # Read per request so a missing secret fails the call, not startup
    return CredentialCipher(settings.integration_secret_key)


def get_oauth_http_client() -> Optional[httpx.AsyncClient]:
    """Outbound client for token endpoints; None means one per call."""
    return None


def get_provider_connector(
    provider: IntegrationProvider = Depends(resolve_provider),
    store: IntegrationStore = Depends(get_store),
    audit_log: AuditLog = Depends(get_audit_log)
) -> BaseConnector:
    return get_connector(provider, store, audit_log)


def get_oauth_handlers(
    store: IntegrationStore = Depends(get_store),
    audit_log: AuditLog = Depends(get_audit_log),
    cipher: CredentialCipher = Depends(get_cipher),
    settings: Settings = Depends(get_settings),
    http_client: Optional[httpx.AsyncClient] = Depends(get_oauth_http_client)
) -> OAuthHandlers:
    return OAuthHandlers(store, audit_log, cipher, settings, http_client=http_client)


def get_webhook_replayer(audit_log: AuditLog = Depends(get_audit_log)) -> WebhookReplayer:
    return WebhookReplayer(audit_log)
