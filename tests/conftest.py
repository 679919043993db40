"""Shared fixtures: in-memory database, test settings and an ASGI client.

Every test gets a fresh SQLite database. Outbound token requests go to a
recording ``httpx.MockTransport`` handler instead of the network.
"""
import os

os.environ.setdefault("ENVIRONMENT", "testing")

from typing import Any, Dict, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from helpdesk.api.deps import get_oauth_http_client
from helpdesk.config import TestingConfig, get_settings
from helpdesk.database import build_session_factory, create_tables, get_db
from helpdesk.main import app


class TokenEndpoint:
    """Stand-in provider token endpoint that records what it was sent."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.payload: Dict[str, Any] = {
            "access_token": "at-live-0123456789abcd",
            "refresh_token": "rt-live-9876543210",
            "token_type": "Bearer",
            "scope": "useraccount",
            "expires_in": 1800,
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


@pytest_asyncio.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return TestingConfig(_env_file=None)


@pytest.fixture
def token_endpoint():
    return TokenEndpoint()


@pytest_asyncio.fixture
async def client(session_factory, settings, token_endpoint):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_oauth_http_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(token_endpoint)) as http_client:
            yield http_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_oauth_http_client] = override_oauth_http_client

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()
