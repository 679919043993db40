from typing import List, Optional, Dict, Any, Union
from datetime import datetime, timezone
import json

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ..config import settings
from ..models.integration import IntegrationAuditLog
from ..integrations.base import require_provider
from ..integrations.providers import IntegrationProvider
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ACTOR = "admin"


def _coerce_details(details: Any) -> Dict[str, Any]:
    """Turn whatever was passed as details into a JSON-storable object"""
    if details is None:
        return {}
    try:
        encoded = jsonable_encoder(details)
        json.dumps(encoded)
    except (TypeError, ValueError, RecursionError):
        return {"repr": repr(details)}
    if not isinstance(encoded, dict):
        return {"value": encoded}
    return encoded


def _parse_limit(limit: Any, default: int, maximum: int) -> int:
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    return min(value, maximum)


class AuditLog:
    """Append-only per-provider action log"""

    def __init__(
        self,
        db: AsyncSession,
        default_limit: int = settings.audit_log_default_limit,
        max_limit: int = settings.audit_log_max_limit
    ):
        self.db = db
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def append(
        self,
        provider: Union[IntegrationProvider, str],
        action: str,
        actor: str = DEFAULT_ACTOR,
        details: Any = None
    ) -> IntegrationAuditLog:
        """Store an entry, stamping it with an id and the current time

        Raises:
            UnknownProviderError: provider is not in the supported set
        """
        resolved = require_provider(provider)
        entry = IntegrationAuditLog(
            provider=resolved.value,
            action=action,
            actor=actor or DEFAULT_ACTOR,
            timestamp=datetime.now(timezone.utc),
            details=_coerce_details(details),
        )
        self.db.add(entry)
        await self.db.commit()
        await self.db.refresh(entry)

        logger.debug("Audit %s %s by %s", entry.provider, entry.action, entry.actor)
        return entry

    async def query(
        self,
        provider: Union[IntegrationProvider, str],
        limit: Any = None
    ) -> List[IntegrationAuditLog]:
        """Most recent entries first, at most ``limit`` of them"""
        resolved = IntegrationProvider.from_value(provider)
        if resolved is None:
            return []

        stmt = (
            select(IntegrationAuditLog)
            .where(IntegrationAuditLog.provider == resolved.value)
            .order_by(IntegrationAuditLog.id.desc())
            .limit(_parse_limit(limit, self.default_limit, self.max_limit))
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


def serialize_entry(entry: IntegrationAuditLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "provider": entry.provider,
        "action": entry.action,
        "actor": entry.actor,
        "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
        "details": entry.details or {},
    }
