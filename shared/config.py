"""
Shared configuration management for the workspace access layer.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PUB_URL = "https://cinnamon-bun-earthstar-pub3.glitch.me"
DEFAULT_MEMORY_WORKSPACES = ["+gardening.xxxxxxxxxxxxxxxxxxxx", "+react.123"]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="WORKSPACES_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Backend collaborator
    backend: str = Field(default="memory", description="memory or graphql")
    graphql_url: str = Field(default="http://localhost:4000/graphql")
    request_timeout: float = Field(default=10.0, gt=0)
    memory_workspaces: List[str] = Field(default_factory=lambda: list(DEFAULT_MEMORY_WORKSPACES))

    # Synchronisation
    pub_url: str = Field(default=DEFAULT_PUB_URL)

    # Posting
    author_seed_label: str = Field(default="test")

    # Query cache
    workspaces_query_policy: str = Field(default="always_refetch")


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
