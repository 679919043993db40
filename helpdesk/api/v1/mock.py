"""
Mock provider APIs.

Stand-ins for the third-party systems' own endpoints so the helpdesk can be
demoed without real accounts. Each call is audited and returns a fixed payload.
"""
from fastapi import APIRouter, Depends, Request
from typing import Dict, Any, Optional

from ..deps import get_audit_log, get_store
from ...integrations.google_client import GoogleClient
from ...integrations.jira_client import JiraClient, JiraIssueRequest
from ...integrations.okta_client import OktaClient, OktaProvisionRequest
from ...integrations.servicenow_client import ServiceNowClient
from ...services.audit_log import AuditLog
from ...services.integration_store import IntegrationStore

router = APIRouter()


async def _optional_json(request: Request) -> Dict[str, Any]:
    """Request body as a dict; missing or unparsable bodies become {}"""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"body": body}


@router.post("/jira/create-issue")
async def mock_jira_create_issue(
    request: Optional[JiraIssueRequest] = None,
    store: IntegrationStore = Depends(get_store),
    audit_log: AuditLog = Depends(get_audit_log)
):
    return await JiraClient(store, audit_log).create_issue(request or JiraIssueRequest())


@router.post("/servicenow/create-incident")
async def mock_servicenow_create_incident(
    request: Request,
    store: IntegrationStore = Depends(get_store),
    audit_log: AuditLog = Depends(get_audit_log)
):
    payload = await _optional_json(request)
    return await ServiceNowClient(store, audit_log).create_incident(payload)


@router.post("/okta/provision")
async def mock_okta_provision(
    request: Optional[OktaProvisionRequest] = None,
    store: IntegrationStore = Depends(get_store),
    audit_log: AuditLog = Depends(get_audit_log)
):
    return await OktaClient(store, audit_log).provision_user(request or OktaProvisionRequest())


@router.post("/google/check-device")
async def mock_google_check_device(
    request: Request,
    store: IntegrationStore = Depends(get_store),
    audit_log: AuditLog = Depends(get_audit_log)
):
    payload = await _optional_json(request)
    return await GoogleClient(store, audit_log).check_device(payload)
