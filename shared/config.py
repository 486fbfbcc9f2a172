"""
Shared configuration management for the Frontdoor routing service.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FRONTDOOR_",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Rule storage
    rules_backend: str = Field(default="file", description="file or postgres")
    rules_path: str = Field(default="data/rules.json")
    postgres_dsn: str = Field(default="postgres://localhost:5432/frontdoor")

    # Generation service
    openai_api_key: Optional[str] = Field(default=None)
    openai_base_url: Optional[str] = Field(default=None)
    generation_model: str = Field(default="openai/gpt-oss-120b")
    generation_reasoning_effort: Optional[str] = Field(default="low")
    generation_timeout_seconds: float = Field(default=60.0)

    # Fallback contact used when no active rule matches
    fallback_contact_name: str = Field(default="Legal Team")
    fallback_contact_email: str = Field(default="legal@acme.corp")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
