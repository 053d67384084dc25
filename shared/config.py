"""
Shared configuration management for the Hotlist aggregation service.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="HOTLIST_",
        env_file=".env",
        case_sensitive=False,
        extra="allow",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Cache
    cache_backend: str = Field(default="memory")
    cache_ttl: int = Field(default=3600)
    cache_namespace: str = Field(default="hotlist")
    cache_sweep_interval: int = Field(default=300)
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Upstream fetching
    request_timeout_ms: int = Field(default=6000)
    force_no_cache: bool = Field(default=False)

    # CORS
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])

    # AI / translation helpers
    ai_enabled: bool = Field(default=False)
    openai_api_key: str = Field(default="")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_model: str = Field(default="gpt-3.5-turbo")
    ai_cache_ttl: int = Field(default=86400)
    ai_max_tokens: int = Field(default=500)
    ai_temperature: float = Field(default=0.7)
    translate_cache_ttl: int = Field(default=86400)

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0


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
