"""Configuration management for the Restorepoint MCP server.

This module defines the ``AppConfig`` model and helpers to load configuration
from environment variables. The resulting object is immutable and is created
once at process startup.
"""

import os
from typing import Any, Literal, Self

from dotenv import load_dotenv
from pydantic import AnyUrl, BaseModel, ConfigDict, Field, ValidationError

# Load variables from a local .env file for development convenience
load_dotenv()

DEFAULT_SERVER_NAME = "restorepoint-mcp"
DEFAULT_SERVER_VERSION = "1.0.0"


class RestorepointSettings(BaseModel):
    """Connection settings for the remote Restorepoint API."""

    model_config = ConfigDict(frozen=True)

    server_url: str | AnyUrl
    api_version: Literal["v1", "v2"] = "v2"
    token: str = Field(min_length=1)
    timeout_ms: int = Field(default=30000, ge=1000, le=300000)
    retry_attempts: int = Field(default=3, ge=0, le=10)
    retry_delay_ms: int = Field(default=1000, ge=100, le=60000)
    verify_ssl: bool = True


class TaskSettings(BaseModel):
    """Limits for in-process tracking of long-running operations."""

    model_config = ConfigDict(frozen=True)

    max_concurrent_tasks: int = Field(default=10, ge=1, le=100)
    task_timeout_ms: int = Field(default=3600000, ge=60000, le=86400000)
    cleanup_interval_ms: int = Field(default=300000, ge=10000, le=3600000)


class AppConfig(BaseModel):
    """Configuration values required to run the Restorepoint MCP server."""

    model_config = ConfigDict(frozen=True)

    restorepoint: RestorepointSettings
    tasks: TaskSettings = Field(default_factory=TaskSettings)
    server_name: str = Field(default=DEFAULT_SERVER_NAME, pattern=r"^[a-zA-Z0-9_-]+$")
    version: str = Field(default=DEFAULT_SERVER_VERSION, pattern=r"^\d+\.\d+\.\d+$")

    @property
    def server_url_str(self) -> str:
        """Return the configured server URL without a trailing slash."""
        return str(self.restorepoint.server_url).rstrip("/")

    @property
    def api_base_url(self) -> str:
        """Return the versioned API base URL, e.g. ``https://rp.example.com/api/v2``."""
        return f"{self.server_url_str}/api/{self.restorepoint.api_version}"

    @property
    def user_agent(self) -> str:
        """Return the User-Agent header value sent with every request."""
        return f"{self.server_name}/{self.version}"

    @classmethod
    def from_env(cls) -> Self:
        """Build a configuration object from environment variables."""
        server_url = os.getenv("RESTOREPOINT_SERVER_URL")
        if not server_url:
            msg = "RESTOREPOINT_SERVER_URL is required to reach the Restorepoint API."
            raise RuntimeError(msg)
        token = os.getenv("RESTOREPOINT_TOKEN")
        if not token:
            msg = "RESTOREPOINT_TOKEN is required to authenticate with the Restorepoint API."
            raise RuntimeError(msg)

        restorepoint: dict[str, Any] = {
            "server_url": server_url,
            "token": token,
            "api_version": os.getenv("RESTOREPOINT_API_VERSION"),
            "timeout_ms": os.getenv("RESTOREPOINT_TIMEOUT_MS"),
            "retry_attempts": os.getenv("RESTOREPOINT_RETRY_ATTEMPTS"),
            "retry_delay_ms": os.getenv("RESTOREPOINT_RETRY_DELAY_MS"),
            "verify_ssl": os.getenv("RESTOREPOINT_VERIFY_SSL"),
        }
        tasks: dict[str, Any] = {
            "max_concurrent_tasks": os.getenv("RESTOREPOINT_MAX_CONCURRENT_TASKS"),
            "task_timeout_ms": os.getenv("RESTOREPOINT_TASK_TIMEOUT_MS"),
            "cleanup_interval_ms": os.getenv("RESTOREPOINT_CLEANUP_INTERVAL_MS"),
        }
        raw_config: dict[str, Any] = {
            "restorepoint": _drop_unset(restorepoint),
            "tasks": _drop_unset(tasks),
            "server_name": os.getenv("MCP_SERVER_NAME"),
            "version": os.getenv("MCP_SERVER_VERSION"),
        }
        try:
            return cls(**_drop_unset(raw_config))
        except ValidationError as exc:
            messages = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            msg = f"Invalid Restorepoint configuration: {messages}"
            raise RuntimeError(msg) from exc


def _drop_unset(values: dict[str, Any]) -> dict[str, Any]:
    """Remove keys whose environment variable was not set so model defaults apply."""
    return {key: value for key, value in values.items() if value is not None and value != ""}


__all__ = ["AppConfig", "RestorepointSettings", "TaskSettings"]
