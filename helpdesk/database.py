from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker

from .config import settings
from .models.base import Base


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for the integrations database"""
    return create_async_engine(database_url, echo=echo, future=True)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# Process-wide engine and session factory, one session per request
engine = build_engine(settings.database_url, echo=settings.database_echo)
async_session = build_session_factory(engine)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create integration tables if they do not exist yet"""
    # Registers the tables on Base.metadata
    from .models import integration  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Dependency to get database session
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()
