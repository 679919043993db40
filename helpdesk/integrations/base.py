from __future__ import annotations

from abc import ABC
from typing import Dict, Any, Optional, List, TYPE_CHECKING
from datetime import datetime, timezone
import logging
from urllib.parse import urlparse

from .providers import (
    ConnectionStatus,
    IntegrationMode,
    IntegrationProvider,
    ProviderSpec,
    get_provider_spec,
)

if TYPE_CHECKING:
    from ..models.integration import IntegrationRecord
    from ..services.audit_log import AuditLog
    from ..services.integration_store import IntegrationStore


# Custom exceptions
class IntegrationError(Exception):
    """Base exception for integration errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        integration_name: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.integration_name = integration_name
        if status_code is not None:
            self.status_code = status_code
        self.response_data = response_data
        self.timestamp = datetime.now(timezone.utc)

    def to_response(self) -> Dict[str, Any]:
        """JSON body returned to the caller."""
        body: Dict[str, Any] = {"success": False, "message": self.message}
        if self.integration_name:
            body["provider"] = self.integration_name
        return body


class ValidationError(IntegrationError):
    """Bad or missing input."""
    status_code = 400


class UnknownProviderError(IntegrationError):
    """Provider identifier outside the supported set."""
    status_code = 400

    def __init__(self, provider: Optional[str] = None) -> None:
        super().__init__("Unknown provider")
        self.provider = provider


class NotFoundError(IntegrationError):
    """Record or sample event does not exist."""
    status_code = 404


class PreconditionError(IntegrationError):
    """Operation attempted before a required setup step."""
    status_code = 400


class ConfigurationError(IntegrationError):
    """Required server configuration is missing.

    Carries operator-facing setup instructions that are echoed to the caller.
    """
    status_code = 500

    def __init__(
        self,
        message: str,
        integration_name: Optional[str] = None,
        instructions: Optional[List[str]] = None
    ) -> None:
        super().__init__(message, integration_name)
        self.instructions = instructions or []

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        if self.instructions:
            body["instructions"] = {"env": self.instructions}
        return body


class IntegrityError(IntegrationError):
    """Encrypted data is malformed or failed authentication."""
    status_code = 500


class UpstreamError(IntegrationError):
    """A provider API rejected the request; its message is passed through."""
    status_code = 502


def require_provider(value: str) -> IntegrationProvider:
    """Parse a provider identifier, rejecting anything outside the fixed set."""
    provider = IntegrationProvider.from_value(value)
    if provider is None:
        raise UnknownProviderError(value)
    return provider


# Base connector class
class BaseConnector(ABC):
    """
    Common connect/disconnect/test/mapping lifecycle for a provider.

    Subclasses declare their canned sample identifiers and, for providers
    with a real OAuth path, the preconditions for a real connection.
    """

    provider: IntegrationProvider
    demo_masked_token: Optional[str] = None
    sample_key: str = "sample_id"
    sample_value: str = ""
    test_message: str = "Demo connection successful."

    def __init__(self, store: IntegrationStore, audit_log: AuditLog) -> None:
        self.store = store
        self.audit_log = audit_log
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def spec(self) -> ProviderSpec:
        return get_provider_spec(self.provider)

    @property
    def name(self) -> str:
        return self.provider.value

    def resolve_mode(self, requested: IntegrationMode) -> IntegrationMode:
        """Demo-only providers accept a real request but connect in demo mode."""
        if self.spec.demo_only:
            return IntegrationMode.DEMO
        return requested

    def check_real_preconditions(self, record: IntegrationRecord) -> None:
        """Raise PreconditionError unless a real connection can be made."""
        if not self.spec.supports_oauth:
            raise PreconditionError(
                f"{self.spec.name} does not support real connections",
                self.name
            )
        if not record.access_token:
            raise PreconditionError(
                "Tokens not found. Please complete OAuth setup first.",
                self.name
            )
        if token_expired(record.token_expiry):
            raise PreconditionError(
                "Access token expired. Refresh the token or reconnect.",
                self.name
            )

    async def connect(self, mode: IntegrationMode = IntegrationMode.DEMO) -> Dict[str, Any]:
        """Mark the provider connected and return its sample identifiers."""
        mode = self.resolve_mode(mode)
        masked_token = self.demo_masked_token

        if mode == IntegrationMode.REAL:
            record = await self._get_record()
            self.check_real_preconditions(record)
            masked_token = record.masked_token

        record = await self.store.connect(self.provider, mode, masked_token=masked_token)
        if record is None:
            raise NotFoundError("Integration not found", self.name)

        await self.audit_log.append(
            self.provider,
            "connect",
            details={"mode": mode.value, "demo": mode == IntegrationMode.DEMO}
        )
        self._logger.info("Connected %s in %s mode", self.name, mode.value)

        response: Dict[str, Any] = {
            "success": True,
            "provider": self.name,
            "status": record.status,
            "mode": record.mode,
            "connected_at": _isoformat(record.connected_at),
        }
        if record.masked_token:
            response["masked_token"] = record.masked_token
        response[self.sample_key] = self.sample_value
        return response

    async def disconnect(self) -> Dict[str, Any]:
        """Disconnect; calling it on a disconnected provider is a no-op."""
        record = await self.store.disconnect(self.provider)
        if record is None:
            raise NotFoundError("Integration not found", self.name)

        await self.audit_log.append(self.provider, "disconnect")
        self._logger.info("Disconnected %s", self.name)

        return {
            "success": True,
            "provider": self.name,
            "status": record.status,
            "message": "Integration disconnected",
        }

    async def test(self) -> Dict[str, Any]:
        """Advisory connectivity check; never fails the caller."""
        try:
            await self.store.mark_tested(self.provider)
            await self.audit_log.append(
                self.provider,
                "test",
                details={self.sample_key: self.sample_value, "ok": True}
            )
        except Exception:
            self._logger.exception("Recording test result for %s failed", self.name)

        return {
            "ok": True,
            self.sample_key: self.sample_value,
            "message": self.test_message,
        }

    async def get_mapping(self) -> Dict[str, Any]:
        record = await self._get_record()
        return dict(record.mapping or {})

    async def save_mapping(self, mapping: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the whole field mapping."""
        record = await self.store.save_mapping(self.provider, mapping)
        if record is None:
            raise NotFoundError("Integration not found", self.name)

        await self.audit_log.append(
            self.provider,
            "mapping.updated",
            details={"mappings": mapping}
        )
        return dict(record.mapping or {})

    async def _get_record(self) -> IntegrationRecord:
        record = await self.store.get(self.provider)
        if record is None:
            raise NotFoundError("Integration not found", self.name)
        return record


# Utility functions
def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def token_expired(expiry: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True once ``expiry`` has passed. No expiry means the token does not expire."""
    if expiry is None:
        return False
    if expiry.tzinfo is None:
        # SQLite drops the offset; stored values are UTC
        expiry = expiry.replace(tzinfo=timezone.utc)
    return (now or datetime.now(timezone.utc)) >= expiry


def validate_url(url: str) -> bool:
    """Validate URL format."""
    try:
        result = urlparse(url)
        return all([result.scheme, result.netloc])
    except ValueError:
        return False


__all__ = [
    "BaseConnector",
    "ConnectionStatus",
    "IntegrationError",
    "ValidationError",
    "UnknownProviderError",
    "NotFoundError",
    "PreconditionError",
    "ConfigurationError",
    "IntegrityError",
    "UpstreamError",
    "require_provider",
    "token_expired",
    "validate_url",
]
