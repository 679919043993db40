from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Union, TYPE_CHECKING
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode, urlparse
import hashlib
import logging
import secrets

import httpx

from ..config import Settings
from ..core.security import CredentialCipher, mask_secret
from .base import (
    ConfigurationError,
    PreconditionError,
    UpstreamError,
    ValidationError,
    require_provider,
    token_expired,
    validate_url,
)
from .providers import GrantType, IntegrationProvider, get_provider_spec

if TYPE_CHECKING:
    from ..models.integration import IntegrationRecord
    from ..services.audit_log import AuditLog
    from ..services.integration_store import IntegrationStore

logger = logging.getLogger(__name__)

STATE_TOKEN_BYTES = 32  # 256 bits of entropy

JIRA_AUTHORIZE_URL = "https://auth.atlassian.com/authorize"
JIRA_TOKEN_URL = "https://auth.atlassian.com/oauth/token"
JIRA_SCOPES = ["read:jira-user", "read:jira-work", "write:jira-work", "offline_access"]

SERVICENOW_HOST_SUFFIX = ".service-now.com"
REFRESH_TOKEN_GRANT = "refresh_token"


@dataclass
class OAuthClientConfig:
    """Where and as whom to run a handshake for one provider."""

    client_id: str
    redirect_uri: str
    auth_url: str
    token_url: str
    grant_type: GrantType = GrantType.AUTHORIZATION_CODE
    scopes: List[str] = field(default_factory=list)
    extra_params: Dict[str, str] = field(default_factory=dict)
    client_secret: Optional[str] = None
    encrypted_client_secret: Optional[str] = None
    instance_url: Optional[str] = None


def _hash_state(state: str) -> str:
    """Short digest of a state token, safe to log."""
    return hashlib.sha256(state.encode()).hexdigest()[:16]


def _upstream_message(response: httpx.Response) -> str:
    """Best-effort error text from a provider response, passed on verbatim."""
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        for key in ("error_description", "message", "error"):
            if payload.get(key):
                return str(payload[key])
    return response.text


class OAuthHandlers:
    """Handles OAuth handshakes for providers that support a real connection.

    - ServiceNow: client credentials are saved per install (client secret
      encrypted); authorization_code or client_credentials grants.
    - Jira: client credentials come from settings; authorization_code only.

    Each handshake keeps exactly one active CSRF state on the provider record.
    The state returned to the callback must match it.
    """

    def __init__(
        self,
        store: IntegrationStore,
        audit_log: AuditLog,
        cipher: CredentialCipher,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.store = store
        self.audit_log = audit_log
        self.cipher = cipher
        self.settings = settings
        self._http_client = http_client

    # Credential setup

    async def save_credentials(
        self,
        provider: Union[IntegrationProvider, str],
        instance: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str] = None,
        grant_type: Optional[str] = None,
        redirect_uri: Optional[str] = None
    ) -> Dict[str, Any]:
        """Validate and save OAuth client credentials, encrypting the secret."""
        provider = self._require_oauth_provider(provider)
        if not get_provider_spec(provider).stores_client_credentials:
            raise ValidationError(
                f"{get_provider_spec(provider).name} credentials are configured through the environment",
                provider.value
            )

        if not instance or not client_id:
            raise ValidationError("Instance URL and Client ID are required", provider.value)

        instance_url = self._validate_instance_url(instance, provider)

        try:
            grant = GrantType(grant_type or GrantType.AUTHORIZATION_CODE.value)
        except ValueError:
            raise ValidationError(f"Unsupported grant type: {grant_type}", provider.value)

        if grant == GrantType.CLIENT_CREDENTIALS and not client_secret:
            raise ValidationError(
                "Client Secret is required for Client Credentials grant type",
                provider.value
            )

        if redirect_uri and not validate_url(redirect_uri):
            raise ValidationError("Invalid redirect URI format", provider.value)

        record = await self.store.get(provider)
        encrypted_secret = record.encrypted_client_secret
        if client_secret:
            encrypted_secret = self.cipher.encrypt(client_secret)

        await self.store.save_credentials(
            provider,
            instance_url=instance_url,
            client_id=client_id,
            encrypted_client_secret=encrypted_secret,
            grant_type=grant.value,
            redirect_uri=redirect_uri or self.settings.default_servicenow_redirect_uri,
        )

        await self.audit_log.append(
            provider,
            "credentials.saved",
            details={
                "instance": instance_url,
                "grantType": grant.value,
                "savedAt": datetime.now(timezone.utc).isoformat(),
            }
        )
        logger.info("Saved %s OAuth credentials for %s", provider.value, instance_url)

        return await self.credential_state(provider)

    async def credential_state(self, provider: Union[IntegrationProvider, str]) -> Dict[str, Any]:
        """Non-secret view of saved credentials."""
        provider = self._require_oauth_provider(provider)
        record = await self.store.get(provider)

        if not record.instance_url or not record.client_id:
            return {
                "instance": None,
                "clientId": None,
                "grantType": None,
                "connected": False,
            }

        return {
            "instance": record.instance_url,
            "clientId": record.client_id,
            "grantType": record.grant_type or GrantType.AUTHORIZATION_CODE.value,
            "connected": record.status == "connected" and record.mode == "real",
            "hasTokens": bool(record.access_token),
            "savedAt": record.credentials_saved_at.isoformat() if record.credentials_saved_at else None,
        }

    # Handshake

    async def start_handshake(self, provider: Union[IntegrationProvider, str]) -> Dict[str, str]:
        """Create a CSRF state and the authorization URL to send the browser to."""
        provider = self._require_oauth_provider(provider)
        record = await self.store.get(provider)
        config = self._client_config(provider, record)

        if config.grant_type == GrantType.CLIENT_CREDENTIALS:
            raise PreconditionError(
                "Use the token endpoint for client_credentials grant type",
                provider.value
            )

        state = secrets.token_hex(STATE_TOKEN_BYTES)
        await self.store.set_oauth_state(provider, state)

        params = {
            "response_type": "code",
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
            "state": state,
        }
        if config.scopes:
            params["scope"] = " ".join(config.scopes)
        params.update(config.extra_params)

        authorize_url = f"{config.auth_url}?{urlencode(params)}"

        details = {"grantType": config.grant_type.value}
        if config.instance_url:
            details["instanceUrl"] = config.instance_url
        await self.audit_log.append(provider, "oauth.started", details=details)
        logger.info("Started %s OAuth handshake, state %s", provider.value, _hash_state(state))

        return {"authorize_url": authorize_url, "state": state}

    async def complete_handshake(
        self,
        provider: Union[IntegrationProvider, str],
        code: Optional[str],
        returned_state: Optional[str]
    ) -> str:
        """Verify the state, exchange ``code`` for tokens and connect.

        The code and CSRF state are checked before any client configuration
        is read, so a forged callback is always audited as a state mismatch.

        Returns:
            The access token (stored encrypted; never echo it to a client)
        """
        provider = self._require_oauth_provider(provider)
        record = await self.store.get(provider)

        if not code:
            raise ValidationError("Missing authorization code in OAuth callback.", provider.value)

        expected_state = record.oauth_state
        if not expected_state or not returned_state or not secrets.compare_digest(
            returned_state, expected_state
        ):
            await self.audit_log.append(
                provider,
                "oauth.state_mismatch",
                details={"stateProvided": bool(returned_state)}
            )
            logger.warning("Rejected %s OAuth callback with unexpected state", provider.value)
            raise ValidationError("Invalid state parameter. Possible CSRF attack.", provider.value)

        config = self._client_config(provider, record)
        client_secret = self._client_secret(provider, config)

        token_response = await self._request_token(
            provider,
            config.token_url,
            {
                "grant_type": GrantType.AUTHORIZATION_CODE.value,
                "code": code,
                "redirect_uri": config.redirect_uri,
                "client_id": config.client_id,
                "client_secret": client_secret,
            },
            failure_action="oauth.exchange.failed",
        )
        return await self._save_tokens(provider, config, token_response, "oauth.exchanged")

    async def exchange_client_credentials(self, provider: Union[IntegrationProvider, str]) -> str:
        """Server-to-server token exchange for the client_credentials grant."""
        provider = self._require_oauth_provider(provider)
        record = await self.store.get(provider)
        config = self._client_config(provider, record)

        if config.grant_type != GrantType.CLIENT_CREDENTIALS:
            raise PreconditionError(
                "Authorization code grant requires the browser flow; use the OAuth start endpoint",
                provider.value
            )

        client_secret = self._client_secret(provider, config)
        token_response = await self._request_token(
            provider,
            config.token_url,
            {
                "grant_type": GrantType.CLIENT_CREDENTIALS.value,
                "client_id": config.client_id,
                "client_secret": client_secret,
            },
            failure_action="token.exchange.failed",
        )
        return await self._save_tokens(provider, config, token_response, "token.exchanged")

    async def refresh_tokens(self, provider: Union[IntegrationProvider, str]) -> str:
        """Get a new access token with the stored refresh token.

        Raises:
            PreconditionError: no refresh token was stored; the user must reconnect
            UpstreamError: the token endpoint rejected the refresh
        """
        provider = self._require_oauth_provider(provider)
        record = await self.store.get(provider)

        if not record.refresh_token:
            raise PreconditionError(
                "Access token expired and no refresh token available. Please reconnect.",
                provider.value
            )

        config = self._client_config(provider, record)
        client_secret = self._client_secret(provider, config)
        refresh_token = self.cipher.decrypt(record.refresh_token)

        token_response = await self._request_token(
            provider,
            config.token_url,
            {
                "grant_type": REFRESH_TOKEN_GRANT,
                "refresh_token": refresh_token,
                "client_id": config.client_id,
                "client_secret": client_secret,
            },
            failure_action="token.refresh.failed",
        )
        return await self._save_tokens(
            provider,
            config,
            token_response,
            "token.refreshed",
            failure_action="token.refresh.failed",
            encrypted_refresh_token=record.refresh_token,
        )

    async def ensure_fresh_token(self, provider: Union[IntegrationProvider, str]) -> None:
        """Refresh the stored access token if it has expired."""
        provider = self._require_oauth_provider(provider)
        record = await self.store.get(provider)

        if not record.access_token or not token_expired(record.token_expiry):
            return

        logger.info("%s access token expired, refreshing", provider.value)
        await self.refresh_tokens(provider)

    # Helpers

    def _require_oauth_provider(self, provider: Union[IntegrationProvider, str]) -> IntegrationProvider:
        provider = require_provider(provider)
        spec = get_provider_spec(provider)
        if not spec.supports_oauth:
            raise ValidationError(f"OAuth is not supported for {spec.name}", provider.value)
        return provider

    def _validate_instance_url(self, instance: str, provider: IntegrationProvider) -> str:
        try:
            parsed = urlparse(instance)
        except ValueError:
            raise ValidationError("Invalid instance URL format", provider.value)

        if not parsed.scheme or not parsed.hostname:
            raise ValidationError("Invalid instance URL format", provider.value)
        if parsed.scheme != "https":
            raise ValidationError("Instance URL must use HTTPS", provider.value)
        if not parsed.hostname.endswith(SERVICENOW_HOST_SUFFIX):
            raise ValidationError(
                "Instance URL must be a valid ServiceNow instance (contain .service-now.com)",
                provider.value
            )
        return f"https://{parsed.netloc}"

    def _client_config(self, provider: IntegrationProvider, record: IntegrationRecord) -> OAuthClientConfig:
        if provider == IntegrationProvider.SERVICENOW:
            if not record.instance_url or not record.client_id:
                raise PreconditionError(
                    "Credentials not saved. Please save credentials first.",
                    provider.value
                )
            return OAuthClientConfig(
                client_id=record.client_id,
                redirect_uri=record.redirect_uri or self.settings.default_servicenow_redirect_uri,
                auth_url=f"{record.instance_url}/oauth_auth.do",
                token_url=f"{record.instance_url}/oauth_token.do",
                grant_type=GrantType(record.grant_type or GrantType.AUTHORIZATION_CODE.value),
                encrypted_client_secret=record.encrypted_client_secret,
                instance_url=record.instance_url,
            )

        # Jira: app registration lives in the environment
        if not self.settings.jira_client_id or not self.settings.jira_redirect_uri:
            raise ConfigurationError(
                "Jira OAuth is not configured. Set JIRA_CLIENT_ID, JIRA_CLIENT_SECRET and "
                "JIRA_REDIRECT_URI in your environment, then restart the app.",
                provider.value,
                instructions=[
                    "JIRA_CLIENT_ID=<your-client-id>",
                    "JIRA_CLIENT_SECRET=<your-client-secret>",
                    "JIRA_REDIRECT_URI=<https://your-app.com/api/v1/oauth/jira/callback>",
                ]
            )
        return OAuthClientConfig(
            client_id=self.settings.jira_client_id,
            redirect_uri=self.settings.jira_redirect_uri,
            auth_url=JIRA_AUTHORIZE_URL,
            token_url=JIRA_TOKEN_URL,
            scopes=list(JIRA_SCOPES),
            extra_params={"audience": "api.atlassian.com", "prompt": "consent"},
            client_secret=self.settings.jira_client_secret,
        )

    def _client_secret(self, provider: IntegrationProvider, config: OAuthClientConfig) -> str:
        if config.client_secret:
            return config.client_secret

        if config.encrypted_client_secret:
            return self.cipher.decrypt(config.encrypted_client_secret)

        if get_provider_spec(provider).stores_client_credentials:
            raise PreconditionError(
                "Client secret not found. Please save credentials again.",
                provider.value
            )
        raise ConfigurationError(
            "Jira OAuth callback hit, but JIRA_CLIENT_SECRET is missing. Set it and restart the app.",
            provider.value,
            instructions=["JIRA_CLIENT_SECRET=<your-client-secret>"]
        )

    @asynccontextmanager
    async def _get_client(self):
        """Injected client when given, otherwise a short-lived one."""
        if self._http_client is not None:
            yield self._http_client
            return

        async with httpx.AsyncClient(timeout=self.settings.oauth_http_timeout) as client:
            yield client

    async def _request_token(
        self,
        provider: IntegrationProvider,
        token_url: str,
        data: Dict[str, str],
        failure_action: str
    ) -> Dict[str, Any]:
        # Tokens are stored encrypted, so check the key before spending a code
        self.cipher.ensure_configured()

        try:
            async with self._get_client() as client:
                response = await client.post(
                    token_url,
                    data=data,
                    headers={"Accept": "application/json"}
                )
        except httpx.HTTPError as e:
            await self.audit_log.append(provider, failure_action, details={"error": str(e)})
            logger.error("Token request to %s failed: %s", provider.value, e)
            raise UpstreamError(f"Token request failed: {e}", provider.value) from e

        if not response.is_success:
            message = _upstream_message(response)
            await self.audit_log.append(
                provider,
                failure_action,
                details={"error": message, "status": response.status_code}
            )
            logger.error("Token endpoint for %s returned %s", provider.value, response.status_code)
            raise UpstreamError(
                f"Failed to exchange code for tokens: {response.status_code} {message}",
                provider.value,
                response_data={"status": response.status_code, "error": message}
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError("Token endpoint returned invalid JSON", provider.value) from e
        if not isinstance(payload, dict):
            raise UpstreamError("Token endpoint returned an unexpected payload", provider.value)
        return payload

    async def _save_tokens(
        self,
        provider: IntegrationProvider,
        config: OAuthClientConfig,
        token_response: Dict[str, Any],
        action: str,
        failure_action: str = "oauth.exchange.failed",
        encrypted_refresh_token: Optional[str] = None
    ) -> str:
        """Encrypt and store the tokens from ``token_response``.

        ``encrypted_refresh_token`` is kept when the response carries no new
        refresh token (refresh grants often omit it).
        """
        access_token = token_response.get("access_token")
        if not access_token:
            await self.audit_log.append(
                provider,
                failure_action,
                details={"error": "missing access_token"}
            )
            raise UpstreamError("Token response did not include an access token", provider.value)

        refresh_token = token_response.get("refresh_token")
        token_expiry = None
        expires_in = token_response.get("expires_in")
        if expires_in is not None:
            try:
                token_expiry = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
            except (TypeError, ValueError):
                logger.warning("Ignoring non-numeric expires_in from %s", provider.value)

        await self.store.store_tokens(
            provider,
            access_token=self.cipher.encrypt(access_token),
            refresh_token=self.cipher.encrypt(refresh_token) if refresh_token else encrypted_refresh_token,
            token_expiry=token_expiry,
            masked_token=mask_secret(access_token),
            token_metadata={
                "scope": token_response.get("scope"),
                "tokenType": token_response.get("token_type"),
                "grantType": config.grant_type.value,
            },
        )

        details = {
            "grantType": config.grant_type.value,
            "scope": token_response.get("scope"),
            "expiresIn": expires_in,
        }
        if config.instance_url:
            details["instanceUrl"] = config.instance_url
        await self.audit_log.append(provider, action, details=details)
        logger.info("Stored %s OAuth tokens, integration connected", provider.value)

        return access_token
