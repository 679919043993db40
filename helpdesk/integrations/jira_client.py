from __future__ import annotations

from typing import Dict, Any, List, Optional

from pydantic import BaseModel, Field

from .base import BaseConnector
from .providers import IntegrationProvider

SAMPLE_ISSUE_KEY = "JRA-2031"
SAMPLE_ISSUE_URL = f"https://jira.example.com/browse/{SAMPLE_ISSUE_KEY}"
SAMPLE_ISSUE_CREATED_AT = "2025-12-04T12:30:00Z"


class JiraIssueRequest(BaseModel):
    """Helpdesk ticket fields sent when creating a Jira issue."""

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    assignee: Optional[str] = None
    labels: List[str] = Field(default_factory=list)


class JiraClient(BaseConnector):
    """
    Jira connector.

    Demo connections get a fixed masked token; a real connection needs a
    completed OAuth handshake (see ``OAuthHandlers``).
    """

    provider = IntegrationProvider.JIRA
    demo_masked_token = "xxxx-xxxx-ABCD"
    sample_key = "sample_issue"
    sample_value = SAMPLE_ISSUE_KEY
    test_message = "Demo Jira connected successfully."

    async def create_issue(self, request: JiraIssueRequest) -> Dict[str, Any]:
        """Demo issue creation: logs the request and returns a canned issue."""
        await self.audit_log.append(
            self.provider,
            "demo.create_issue",
            details={
                "title": request.title,
                "priority": request.priority,
                "assignee": request.assignee,
                "external_id": SAMPLE_ISSUE_KEY,
            }
        )
        self._logger.info("Demo Jira issue %s created", SAMPLE_ISSUE_KEY)

        return {
            "external_id": SAMPLE_ISSUE_KEY,
            "status": "created",
            "url": SAMPLE_ISSUE_URL,
            "created_at": SAMPLE_ISSUE_CREATED_AT,
        }
