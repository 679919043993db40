"""Tests for the integration lifecycle endpoints and the error envelope."""
import pytest
from sqlalchemy import func, select

from helpdesk.models.integration import IntegrationAuditLog, IntegrationRecord

PROVIDERS = ["jira", "servicenow", "okta", "google"]


async def _count(session_factory, model):
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


class TestListIntegrations:

    @pytest.mark.asyncio
    async def test_lists_all_providers(self, client):
        response = await client.get("/api/v1/integrations")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [item["provider"] for item in body["data"]] == PROVIDERS
        assert body["data"][3]["meta"]["name"] == "Google Workspace"
        assert body["data"][2]["meta"]["demoOnly"] is True

    @pytest.mark.asyncio
    async def test_reflects_connection_state(self, client):
        await client.post("/api/v1/integrations/okta/connect", json={"mode": "demo"})

        body = (await client.get("/api/v1/integrations")).json()
        okta = next(item for item in body["data"] if item["provider"] == "okta")

        assert okta["status"] == "connected"
        assert okta["connected_at"] is not None


class TestConnect:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", PROVIDERS)
    async def test_demo_connect(self, client, provider):
        response = await client.post(f"/api/v1/integrations/{provider}/connect", json={"mode": "demo"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "connected"
        assert body["mode"] == "demo"
        assert body["connected_at"]

    @pytest.mark.asyncio
    async def test_connect_without_body_is_demo(self, client):
        response = await client.post("/api/v1/integrations/google/connect")

        assert response.status_code == 200
        assert response.json()["mode"] == "demo"
        assert response.json()["sample_user"] == "GWA-USER-123"

    @pytest.mark.asyncio
    async def test_jira_demo_token_and_sample(self, client):
        body = (await client.post("/api/v1/integrations/jira/connect", json={})).json()

        assert body["masked_token"] == "xxxx-xxxx-ABCD"
        assert body["sample_issue"] == "JRA-2031"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", ["okta", "google"])
    async def test_demo_only_provider_ignores_real_mode(self, client, provider):
        response = await client.post(f"/api/v1/integrations/{provider}/connect", json={"mode": "real"})

        assert response.status_code == 200
        assert response.json()["mode"] == "demo"

    @pytest.mark.asyncio
    async def test_servicenow_real_without_credentials(self, client):
        response = await client.post("/api/v1/integrations/servicenow/connect", json={"mode": "real"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Credentials not found. Please save credentials first."

        record = (await client.get("/api/v1/integrations")).json()["data"][1]
        assert record["status"] == "disconnected"

    @pytest.mark.asyncio
    async def test_jira_real_without_tokens(self, client):
        response = await client.post("/api/v1/integrations/jira/connect", json={"mode": "real"})

        assert response.status_code == 400
        assert "OAuth" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_servicenow_demo_always_connects(self, client):
        response = await client.post("/api/v1/integrations/servicenow/connect", json={"mode": "demo"})

        assert response.status_code == 200
        assert response.json()["sample_incident"] == "INC-001234"


class TestDisconnect:

    @pytest.mark.asyncio
    async def test_idempotent(self, client):
        await client.post("/api/v1/integrations/jira/connect", json={"mode": "demo"})

        for _ in range(2):
            response = await client.post("/api/v1/integrations/jira/disconnect")
            assert response.status_code == 200
            assert response.json()["status"] == "disconnected"
            assert response.json()["message"] == "Integration disconnected"

    @pytest.mark.asyncio
    async def test_never_connected(self, client):
        response = await client.post("/api/v1/integrations/google/disconnect")

        assert response.status_code == 200
        assert response.json()["status"] == "disconnected"


class TestConnectivityCheck:

    @pytest.mark.asyncio
    async def test_succeeds_while_disconnected(self, client):
        response = await client.post("/api/v1/integrations/servicenow/test")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["sample_incident"] == "INC-001234"

    @pytest.mark.asyncio
    async def test_records_audit_entry_and_time(self, client):
        await client.post("/api/v1/integrations/okta/test")

        logs = (await client.get("/api/v1/integrations/okta/logs")).json()["logs"]
        okta = (await client.get("/api/v1/integrations")).json()["data"][2]

        assert logs[0]["action"] == "test"
        assert okta["last_test_at"] is not None
        assert okta["status"] == "disconnected"


class TestMapping:

    @pytest.mark.asyncio
    async def test_defaults_to_empty(self, client):
        response = await client.get("/api/v1/integrations/jira/mapping")

        assert response.status_code == 200
        assert response.json()["mappings"] == {}

    @pytest.mark.asyncio
    async def test_save_replaces_whole_mapping(self, client):
        url = "/api/v1/integrations/jira/mapping"
        await client.post(url, json={"mappings": {"a": 1, "b": 2}})
        saved = await client.post(url, json={"mappings": {"a": 1}})

        assert saved.json()["mappings"] == {"a": 1}
        assert (await client.get(url)).json()["mappings"] == {"a": 1}

    @pytest.mark.asyncio
    async def test_survives_disconnect(self, client):
        url = "/api/v1/integrations/servicenow/mapping"
        await client.post(url, json={"mappings": {"priority": "urgency"}})
        await client.post("/api/v1/integrations/servicenow/disconnect")

        assert (await client.get(url)).json()["mappings"] == {"priority": "urgency"}

    @pytest.mark.asyncio
    async def test_invalid_body_is_400(self, client):
        response = await client.post(
            "/api/v1/integrations/jira/mapping",
            json={"mappings": "not-an-object"}
        )

        assert response.status_code == 400
        assert response.json()["success"] is False


class TestLogs:

    @pytest.mark.asyncio
    async def test_most_recent_first_with_limit(self, client):
        await client.post("/api/v1/integrations/jira/connect", json={"mode": "demo"})
        await client.post("/api/v1/integrations/jira/disconnect")
        await client.post("/api/v1/integrations/jira/test")

        response = await client.get("/api/v1/integrations/jira/logs", params={"limit": 2})

        assert response.status_code == 200
        assert [log["action"] for log in response.json()["logs"]] == ["test", "disconnect"]

    @pytest.mark.asyncio
    async def test_non_numeric_limit_uses_default(self, client):
        for _ in range(3):
            await client.post("/api/v1/integrations/google/test")

        response = await client.get("/api/v1/integrations/google/logs", params={"limit": "lots"})

        assert response.status_code == 200
        assert len(response.json()["logs"]) == 3

    @pytest.mark.asyncio
    async def test_connect_entry_details(self, client):
        await client.post("/api/v1/integrations/okta/connect", json={"mode": "demo"})

        log = (await client.get("/api/v1/integrations/okta/logs")).json()["logs"][0]

        assert log["action"] == "connect"
        assert log["actor"] == "admin"
        assert log["details"] == {"mode": "demo", "demo": True}


class TestUnknownProvider:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,path", [
        ("post", "/api/v1/integrations/slack/connect"),
        ("post", "/api/v1/integrations/slack/disconnect"),
        ("post", "/api/v1/integrations/slack/test"),
        ("get", "/api/v1/integrations/slack/mapping"),
        ("get", "/api/v1/integrations/slack/logs"),
        ("post", "/api/v1/oauth/slack/start"),
        ("get", "/api/v1/oauth/slack/callback"),
    ])
    async def test_rejected_before_persistence(self, client, session_factory, method, path):
        response = await getattr(client, method)(path)

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Unknown provider"}
        assert await _count(session_factory, IntegrationRecord) == 0
        assert await _count(session_factory, IntegrationAuditLog) == 0


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
