from typing import List, Optional, Dict, Any, Union
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy import exc as sa_exc

from ..models.integration import IntegrationRecord
from ..integrations.providers import (
    ConnectionStatus,
    IntegrationMode,
    IntegrationProvider,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)

ProviderRef = Union[IntegrationProvider, str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IntegrationStore:
    """Persisted connection state, one record per provider.

    Records are created lazily in the disconnected/demo state. Every mutation
    is a single-row update committed on its own (last write wins).
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list(self) -> List[IntegrationRecord]:
        """All providers in enum order"""
        return [await self._get_or_create(provider) for provider in IntegrationProvider]

    async def get(self, provider: ProviderRef) -> Optional[IntegrationRecord]:
        resolved = IntegrationProvider.from_value(provider)
        if resolved is None:
            return None
        return await self._get_or_create(resolved)

    async def connect(
        self,
        provider: ProviderRef,
        mode: IntegrationMode,
        masked_token: Optional[str] = None
    ) -> Optional[IntegrationRecord]:
        """Mark connected; reconnecting refreshes mode, token and timestamp"""
        record = await self.get(provider)
        if record is None:
            return None

        record.status = ConnectionStatus.CONNECTED.value
        record.mode = IntegrationMode(mode).value
        if masked_token is not None:
            record.masked_token = masked_token
        record.connected_at = _now()

        await self._commit(record)
        return record

    async def disconnect(self, provider: ProviderRef) -> Optional[IntegrationRecord]:
        """Mark disconnected and drop tokens; mapping and saved credentials stay"""
        record = await self.get(provider)
        if record is None:
            return None

        record.status = ConnectionStatus.DISCONNECTED.value
        record.masked_token = None
        record.connected_at = None
        record.access_token = None
        record.refresh_token = None
        record.token_expiry = None
        record.token_metadata = None
        record.oauth_state = None

        await self._commit(record)
        return record

    async def mark_tested(self, provider: ProviderRef) -> None:
        """Record a connectivity test. Never raises."""
        try:
            record = await self.get(provider)
            if record is None:
                return
            record.last_test_at = _now()
            await self._commit(record)
        except sa_exc.SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning("Could not record test time for %s: %s", provider, e)

    async def save_mapping(
        self,
        provider: ProviderRef,
        mapping: Dict[str, Any]
    ) -> Optional[IntegrationRecord]:
        """Replace the whole mapping (no merge)"""
        record = await self.get(provider)
        if record is None:
            return None

        record.mapping = dict(mapping)

        await self._commit(record)
        return record

    async def save_credentials(
        self,
        provider: ProviderRef,
        instance_url: str,
        client_id: str,
        encrypted_client_secret: Optional[str],
        grant_type: str,
        redirect_uri: str
    ) -> Optional[IntegrationRecord]:
        record = await self.get(provider)
        if record is None:
            return None

        record.instance_url = instance_url
        record.client_id = client_id
        record.encrypted_client_secret = encrypted_client_secret
        record.grant_type = grant_type
        record.redirect_uri = redirect_uri
        record.credentials_saved_at = _now()

        await self._commit(record)
        return record

    async def set_oauth_state(
        self,
        provider: ProviderRef,
        state: Optional[str]
    ) -> Optional[IntegrationRecord]:
        """Replace the single active handshake nonce"""
        record = await self.get(provider)
        if record is None:
            return None

        record.oauth_state = state

        await self._commit(record)
        return record

    async def store_tokens(
        self,
        provider: ProviderRef,
        access_token: str,
        refresh_token: Optional[str],
        token_expiry: Optional[datetime],
        masked_token: str,
        token_metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[IntegrationRecord]:
        """Save exchanged (already encrypted) tokens and mark the record connected"""
        record = await self.get(provider)
        if record is None:
            return None

        record.access_token = access_token
        record.refresh_token = refresh_token
        record.token_expiry = token_expiry
        record.token_metadata = token_metadata or {}
        record.oauth_state = None
        record.masked_token = masked_token
        record.status = ConnectionStatus.CONNECTED.value
        record.mode = IntegrationMode.REAL.value
        record.connected_at = _now()

        await self._commit(record)
        return record

    async def _get_or_create(self, provider: IntegrationProvider) -> IntegrationRecord:
        record = await self._select(provider)
        if record is not None:
            return record

        record = IntegrationRecord(
            provider=provider.value,
            status=ConnectionStatus.DISCONNECTED.value,
            mode=IntegrationMode.DEMO.value,
            mapping={},
        )
        self.db.add(record)
        try:
            await self.db.commit()
        except sa_exc.IntegrityError:
            # Another request created it first
            await self.db.rollback()
            record = await self._select(provider)
            if record is None:
                raise
            return record

        await self.db.refresh(record)
        logger.info("Created integration record for %s", provider.value)
        return record

    async def _select(self, provider: IntegrationProvider) -> Optional[IntegrationRecord]:
        stmt = select(IntegrationRecord).where(IntegrationRecord.provider == provider.value)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _commit(self, record: IntegrationRecord) -> None:
        try:
            await self.db.commit()
        except sa_exc.SQLAlchemyError:
            await self.db.rollback()
            raise
        await self.db.refresh(record)
