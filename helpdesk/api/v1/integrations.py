from fastapi import APIRouter, Depends
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field

from ..deps import (
    get_audit_log,
    get_oauth_handlers,
    get_provider_connector,
    get_store,
    resolve_provider,
)
from ...integrations.base import BaseConnector, ValidationError
from ...integrations.oauth_handlers import OAuthHandlers
from ...integrations.providers import (
    GrantType,
    IntegrationMode,
    IntegrationProvider,
    get_provider_spec,
)
from ...models.integration import IntegrationRecord
from ...services.audit_log import AuditLog, serialize_entry
from ...services.integration_store import IntegrationStore

router = APIRouter()


class ConnectRequest(BaseModel):
    mode: Optional[str] = None


class MappingRequest(BaseModel):
    mappings: Dict[str, Any] = Field(default_factory=dict)


class ServiceNowCredentialsRequest(BaseModel):
    instance: Optional[str] = None
    clientId: Optional[str] = None
    clientSecret: Optional[str] = None
    grantType: Optional[str] = None
    redirectUri: Optional[str] = None


class TokenRequest(BaseModel):
    grantType: Optional[str] = None


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_record(record: IntegrationRecord) -> Dict[str, Any]:
    """Public view of a record; secrets and tokens never leave the server"""
    provider = IntegrationProvider(record.provider)
    spec = get_provider_spec(provider)

    data: Dict[str, Any] = {
        "provider": record.provider,
        "meta": {
            "id": record.provider,
            "name": spec.name,
            "description": spec.description,
            "supportsOAuth": spec.supports_oauth,
            "demoOnly": spec.demo_only,
        },
        "status": record.status,
        "mode": record.mode,
        "masked_token": record.masked_token,
        "mapping": record.mapping or {},
        "connected_at": _isoformat(record.connected_at),
        "last_test_at": _isoformat(record.last_test_at),
    }

    if spec.supports_oauth and (record.client_id or record.access_token):
        data["oauth"] = {
            "instance_url": record.instance_url,
            "client_id": record.client_id,
            "grant_type": record.grant_type,
            "redirect_uri": record.redirect_uri,
            "has_client_secret": bool(record.encrypted_client_secret),
            "has_tokens": bool(record.access_token),
            "token_expiry": _isoformat(record.token_expiry),
        }
    return data


@router.get("")
async def list_integrations(store: IntegrationStore = Depends(get_store)):
    """List all integrations and their status"""

    records = await store.list()

    return {
        "success": True,
        "data": [serialize_record(record) for record in records],
        "message": "Integrations retrieved successfully",
    }


# ServiceNow credential setup

@router.post("/servicenow/credentials")
async def save_servicenow_credentials(
    request: ServiceNowCredentialsRequest,
    oauth_handler: OAuthHandlers = Depends(get_oauth_handlers)
):
    """Save instance URL and OAuth client for ServiceNow"""

    state = await oauth_handler.save_credentials(
        IntegrationProvider.SERVICENOW,
        instance=request.instance,
        client_id=request.clientId,
        client_secret=request.clientSecret,
        grant_type=request.grantType,
        redirect_uri=request.redirectUri,
    )

    return {"success": True, "saved": True, "state": state}


@router.get("/servicenow/state")
async def get_servicenow_state(oauth_handler: OAuthHandlers = Depends(get_oauth_handlers)):
    """Saved ServiceNow credentials, without the secret"""

    return await oauth_handler.credential_state(IntegrationProvider.SERVICENOW)


@router.post("/servicenow/token")
async def exchange_servicenow_token(
    request: Optional[TokenRequest] = None,
    oauth_handler: OAuthHandlers = Depends(get_oauth_handlers),
    store: IntegrationStore = Depends(get_store)
):
    """Direct token exchange for the client_credentials grant"""

    if request and request.grantType and request.grantType != GrantType.CLIENT_CREDENTIALS.value:
        raise ValidationError(
            "Only the client_credentials grant can be exchanged directly; "
            "use the OAuth start and callback endpoints for authorization_code",
            IntegrationProvider.SERVICENOW.value
        )

    await oauth_handler.exchange_client_credentials(IntegrationProvider.SERVICENOW)
    record = await store.get(IntegrationProvider.SERVICENOW)

    return {
        "success": True,
        "tokensSaved": True,
        "provider": record.provider,
        "status": record.status,
        "masked_token": record.masked_token,
    }


# Generic provider lifecycle

@router.post("/{provider}/connect")
async def connect_integration(
    request: Optional[ConnectRequest] = None,
    connector: BaseConnector = Depends(get_provider_connector),
    oauth_handler: OAuthHandlers = Depends(get_oauth_handlers)
):
    """Connect a provider in demo or real mode"""

    mode = connector.resolve_mode(IntegrationMode.from_request(request.mode if request else None))
    if mode == IntegrationMode.REAL and connector.spec.supports_oauth:
        # An expired access token is refreshed before the real connect
        await oauth_handler.ensure_fresh_token(connector.provider)
    return await connector.connect(mode)


@router.post("/{provider}/disconnect")
async def disconnect_integration(connector: BaseConnector = Depends(get_provider_connector)):
    """Disconnect a provider; repeat calls are harmless"""

    return await connector.disconnect()


@router.post("/{provider}/test")
async def test_integration(connector: BaseConnector = Depends(get_provider_connector)):
    """Advisory connectivity check"""

    return await connector.test()


@router.get("/{provider}/mapping")
async def get_mapping(connector: BaseConnector = Depends(get_provider_connector)):
    """Current field mapping"""

    mappings = await connector.get_mapping()
    return {"success": True, "provider": connector.name, "mappings": mappings}


@router.post("/{provider}/mapping")
async def save_mapping(
    request: MappingRequest,
    connector: BaseConnector = Depends(get_provider_connector)
):
    """Replace the field mapping"""

    mappings = await connector.save_mapping(request.mappings)
    return {"success": True, "provider": connector.name, "mappings": mappings}


@router.get("/{provider}/logs")
async def get_logs(
    provider: IntegrationProvider = Depends(resolve_provider),
    limit: Optional[str] = None,
    audit_log: AuditLog = Depends(get_audit_log)
):
    """Recent audit entries, newest first"""

    entries: List = await audit_log.query(provider, limit)
    return {
        "success": True,
        "provider": provider.value,
        "logs": [serialize_entry(entry) for entry in entries],
    }
