from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )
    # Application
    app_name: str = "IT Helpdesk Integrations"
    app_version: str = "1.0.0"
    app_url: str = Field(default="http://localhost:8000")
    debug: bool = Field(default=False)

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./helpdesk.db")
    database_echo: bool = Field(default=False)

    # Credential encryption (required for anything that stores secrets)
    integration_secret_key: Optional[str] = Field(default=None)

    # External Integrations
    # Jira (Atlassian OAuth 2.0 3LO)
    jira_client_id: Optional[str] = Field(default=None)
    jira_client_secret: Optional[str] = Field(default=None)
    jira_redirect_uri: Optional[str] = Field(default=None)

    # ServiceNow (instance URL and client id are saved per install)
    servicenow_redirect_uri: Optional[str] = Field(default=None)

    # Outbound token endpoint calls
    oauth_http_timeout: int = Field(default=30, ge=1, le=300)

    # Audit log reads
    audit_log_default_limit: int = Field(default=20, ge=1)
    audit_log_max_limit: int = Field(default=100, ge=1)

    # CORS
    allowed_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"]
    )

    # Logging
    log_level: str = Field(default="INFO")

    @property
    def default_servicenow_redirect_uri(self) -> str:
        """Callback URL used when none was saved with the credentials"""
        if self.servicenow_redirect_uri:
            return self.servicenow_redirect_uri
        return f"{self.app_url.rstrip('/')}/api/v1/oauth/servicenow/callback"


# Environment-specific configurations
class DevelopmentConfig(Settings):
    debug: bool = True
    log_level: str = "DEBUG"


class ProductionConfig(Settings):
    debug: bool = False
    database_echo: bool = False
    log_level: str = "WARNING"


class TestingConfig(Settings):
    database_url: str = "sqlite+aiosqlite:///:memory:"
    integration_secret_key: Optional[str] = "test-integration-secret"


def get_settings() -> Settings:
    """Factory function to get settings based on environment"""
    env = os.getenv("ENVIRONMENT", "development").lower()

    if env == "production":
        return ProductionConfig()
    elif env == "testing":
        return TestingConfig()
    else:
        return DevelopmentConfig()


# Global settings instance
settings = get_settings()
