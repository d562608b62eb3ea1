from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Follows 12-factor app configuration principles.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Server
    PORT: int = 3000
    STATIC_DIR: str = "public"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # Remote repository holding inboxes and audit logs
    GITHUB_USERNAME: str = "zBetita"
    GITHUB_REPO: str = "Novita-System"
    GITHUB_API_URL: str = "https://api.github.com"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Access token - optional at startup, every data operation fails without it
    GITHUB_TOKEN: Optional[str] = None

    @property
    def repo_api_base(self) -> str:
        """Base URL of the repository on the GitHub REST API."""
        return f"{self.GITHUB_API_URL.rstrip('/')}/repos/{self.GITHUB_USERNAME}/{self.GITHUB_REPO}"

    @property
    def token_configured(self) -> bool:
        return bool(self.GITHUB_TOKEN)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()
