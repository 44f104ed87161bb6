from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    PUBLIC_INTERFACE
    Client configuration loaded from environment variables using pydantic-settings.

    The instance is frozen: it is built once and handed to the transport and the
    enumerators, none of which mutate it.
    """

    # JIRA connection
    JIRA_BASE_URL: Optional[str] = Field(default=None, description="Base URL of the JIRA instance")
    JIRA_EMAIL: Optional[str] = Field(default=None, description="JIRA user name or account email")
    JIRA_API_TOKEN: Optional[str] = Field(default=None, description="JIRA password or API token")
    JIRA_API_VERSION: str = Field(default="2", description="REST API version segment, e.g. 2 or 3")

    # JIRA client behavior
    JIRA_TIMEOUT_SECONDS: float = Field(default=15.0, gt=0, description="HTTP timeout for JIRA API calls (seconds)")
    JIRA_PAGE_SIZE: int = Field(default=50, ge=1, le=1000, description="maxResults used for each search page")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level, e.g., DEBUG, INFO, WARNING")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True)

    @field_validator("JIRA_BASE_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip().rstrip("/") or None

    @property
    def api_base_url(self) -> str:
        """Absolute base URL of the versioned REST API, ending with a slash."""
        if not self.JIRA_BASE_URL:
            raise ValueError("JIRA_BASE_URL is not configured")
        return f"{self.JIRA_BASE_URL}/rest/api/{self.JIRA_API_VERSION}/"


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached client settings instance."""
    return Settings()
