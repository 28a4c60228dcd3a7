"""Configuration loading for the Probe Dock test listener.

This module provides centralized configuration management:
- Load settings from PROBEDOCK_* environment variables and .env files
- Validate configuration using pydantic
- Provide typed access to all settings
- Convert settings into the immutable core GlobalConfiguration
"""

from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from probedock_listener.core.models import GlobalConfiguration

CommaSeparated = Annotated[list[str], NoDecode]


class Settings(BaseSettings):
    """Listener configuration loaded from environment.

    Uses pydantic-settings for environment variable handling with
    .env file support via python-dotenv. List settings are given as
    comma-separated values (PROBEDOCK_TAGS=smoke,fast).
    """

    model_config = SettingsConfigDict(
        env_prefix="PROBEDOCK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Probe Dock server
    server_url: str = Field(
        default="",
        description="Probe Dock server base URL",
    )
    api_token: str = Field(
        default="",
        description="Probe Dock API token",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for requests to the Probe Dock server",
    )

    # Project identification
    project_api_id: str = Field(
        default="",
        description="API identifier of the Probe Dock project",
    )
    project_version: str = Field(
        default="",
        description="Version of the project under test",
    )
    pipeline: str = Field(
        default="",
        description="Pipeline label of the test run",
    )
    stage: str = Field(
        default="",
        description="Stage label of the test run",
    )

    # Default test metadata
    category: str = Field(
        default="",
        description="Default category for tests without an explicit one",
    )
    tags: CommaSeparated = Field(
        default_factory=list,
        description="Tags added to every test",
    )
    tickets: CommaSeparated = Field(
        default_factory=list,
        description="Tickets added to every test",
    )
    contributors: CommaSeparated = Field(
        default_factory=list,
        description="Default contributors of the project",
    )
    filters: CommaSeparated = Field(
        default_factory=list,
        description="Test filters (type:pattern), empty runs every test",
    )

    # Sinks
    publish: bool = Field(
        default=False,
        description="Publish test runs to the Probe Dock server",
    )
    save: bool = Field(
        default=False,
        description="Save test runs in the workspace",
    )
    disabled: bool = Field(
        default=False,
        description="Disable the listener entirely",
    )
    workspace: str = Field(
        default="./.probedock",
        description="Workspace directory for saved test runs",
    )

    # Output
    full_stack_traces: bool = Field(
        default=True,
        description="Include complete stack traces and causes in failure messages",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    @field_validator("tags", "tickets", "contributors", "filters", mode="before")
    @classmethod
    def split_comma_separated(cls, v: object) -> object:
        """Accept comma-separated strings and drop blank entries."""
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, (list, tuple, set, frozenset)):
            return [str(item).strip() for item in v if str(item).strip()]
        return v

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        """Ensure the server URL is an http(s) URL when set."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("server_url must start with http:// or https://")
        return v

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Ensure request timeout is positive."""
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v

    def to_configuration(self) -> GlobalConfiguration:
        """Build the immutable configuration passed to the core."""
        return GlobalConfiguration(
            category=self.category or None,
            tags=frozenset(self.tags),
            tickets=frozenset(self.tickets),
            contributors=frozenset(self.contributors),
            publish=self.publish,
            save=self.save,
            disabled=self.disabled,
            project_api_id=self.project_api_id or None,
            project_version=self.project_version or None,
            pipeline=self.pipeline or None,
            stage=self.stage or None,
            full_stack_traces=self.full_stack_traces,
            filters=tuple(self.filters),
        )


def load_settings(env_file: str | None = None) -> Settings:
    """Load listener settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.

    Returns:
        Validated Settings instance.

    Raises:
        ValidationError: If settings validation fails.
    """
    if env_file:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()


__all__ = ["Settings", "load_settings"]
