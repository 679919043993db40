from sqlalchemy import Column, String, Text, DateTime, JSON
from .base import BaseModel


class IntegrationRecord(BaseModel):
    """Connection state and configuration for one provider"""
    __tablename__ = "integration_records"

    provider = Column(String, nullable=False, unique=True, index=True)  # jira, servicenow, okta, google
    status = Column(String, nullable=False, default="disconnected")  # disconnected, connected
    mode = Column(String, nullable=False, default="demo")  # demo, real

    # Display-only, never more than the last 4 characters of a secret
    masked_token = Column(String, nullable=True)

    # Internal field name -> external field name
    mapping = Column(JSON, nullable=False, default=lambda: {})

    connected_at = Column(DateTime(timezone=True), nullable=True)
    last_test_at = Column(DateTime(timezone=True), nullable=True)

    # OAuth client configuration
    instance_url = Column(String, nullable=True)
    client_id = Column(String, nullable=True)
    encrypted_client_secret = Column(Text, nullable=True)
    grant_type = Column(String, nullable=True)  # authorization_code, client_credentials
    redirect_uri = Column(String, nullable=True)
    credentials_saved_at = Column(DateTime(timezone=True), nullable=True)

    # Single active CSRF nonce for an in-flight handshake
    oauth_state = Column(String, nullable=True)

    # Tokens (encrypted)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expiry = Column(DateTime(timezone=True), nullable=True)
    token_metadata = Column(JSON, nullable=True)


class IntegrationAuditLog(BaseModel):
    """Append-only record of actions taken against a provider"""
    __tablename__ = "integration_audit_logs"

    provider = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False)  # connect, oauth.started, demo.create_issue, ...
    actor = Column(String, nullable=False, default="admin")
    timestamp = Column(DateTime(timezone=True), nullable=False)
    details = Column(JSON, nullable=True)
