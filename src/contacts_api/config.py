"""
Application configuration with environment-driven settings.
"""

from enum import Enum
from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Supported mailing-list provider types."""

    MAILCHIMP = "mailchimp"
    MOCK = "mock"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "contacts-api"
    app_env: Literal["dev", "qa", "uat", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = Field(default="0.0.0.0", description="Listen host")
    port: int = Field(default=5000, ge=1, le=65535, description="Listen port")

    # Mailchimp
    provider_type: ProviderType = Field(default=ProviderType.MAILCHIMP)
    mailchimp_api_key: str = Field(default="", description="Mailchimp Marketing API key")
    mailchimp_server: str = Field(
        default="",
        validation_alias=AliasChoices("mailchimp_server", "mailchim_server"),
        description="Mailchimp data center prefix, e.g. us21",
    )
    mailchimp_list_id: str = Field(default="", description="Target audience (list) id")
    mailchimp_timeout_seconds: float = Field(default=30.0, gt=0)

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins",
    )

    # List replace
    batch_poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Interval between batch status checks.",
    )
    batch_poll_timeout_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Deadline after which the batch poll stops waiting.",
    )
    replace_wait_for_delete: bool = Field(
        default=True,
        description="Wait for the delete batch (bounded) before adding new contacts.",
    )

    @field_validator("mailchimp_server", mode="after")
    @classmethod
    def strip_server(cls, v: str) -> str:
        return v.strip()

    @property
    def mailchimp_data_center(self) -> str:
        """Server prefix, derived from the API key suffix when not set."""
        if self.mailchimp_server:
            return self.mailchimp_server
        if "-" in self.mailchimp_api_key:
            return self.mailchimp_api_key.rsplit("-", 1)[1]
        return ""

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
