
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from storytest.models.models import ConfigCheck

DEFAULT_JIRA_BASE_URL = "https://your-instance.atlassian.net"


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Jira
    jira_base_url: str = DEFAULT_JIRA_BASE_URL
    jira_email: str = ""
    jira_api_token: str = ""
    # None leaves requests without a timeout
    jira_timeout: Optional[float] = None

    # LLM
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-pro"
    llm_temperature: float = 0.2
    max_test_cases: int = 10
    enable_follow_up_questions: bool = True

    log_level: str = "INFO"


def check_jira_settings(settings: Settings) -> ConfigCheck:
    """Validate Jira settings without failing; the caller decides what to do with the warnings."""
    warnings = []
    email_set = bool(settings.jira_email)
    token_set = bool(settings.jira_api_token)
    if not email_set or not token_set:
        warnings.append(
            "JIRA credentials not configured. Set JIRA_API_TOKEN and JIRA_EMAIL environment variables."
        )
    if not settings.jira_base_url or settings.jira_base_url == DEFAULT_JIRA_BASE_URL:
        warnings.append(
            f"JIRA_BASE_URL is not set, using placeholder {DEFAULT_JIRA_BASE_URL}"
        )
    return ConfigCheck(
        baseUrl=settings.jira_base_url or "NOT SET",
        emailSet=email_set,
        apiTokenSet=token_set,
        hasCredentials=email_set and token_set,
        warnings=warnings,
    )


def get_settings() -> Settings:
    return Settings()
