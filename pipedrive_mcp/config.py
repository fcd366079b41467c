"""Server configuration loaded from environment variables.

The API token is the only required value. Everything else has a default
that matches the Pipedrive API limits:
- page size 500 (maximum allowed per list request)
- safety ceiling of 10,000 records scanned per aggregation
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, ValidationError, field_validator

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_API_URL = "https://api.pipedrive.com/v1"

# Maximum allowed by the Pipedrive list endpoints
MAX_PAGE_SIZE = 500
DEFAULT_PAGE_SIZE = 500

# Safety ceiling on records scanned by a single aggregation
DEFAULT_MAX_RECORDS = 10_000

DEFAULT_TIMEOUT_SECONDS = 30.0

DEFAULT_MCP_HOST = "0.0.0.0"
DEFAULT_MCP_PORT = 8001

VALID_TRANSPORTS = ("stdio", "http")


class ConfigError(Exception):
    """Raised when the server cannot be configured (fatal at startup)."""


class Settings(BaseModel):
    """Validated server settings."""

    api_token: str = Field(..., description="Pipedrive API token")
    api_url: str = Field(DEFAULT_API_URL, description="Pipedrive API base URL")
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    max_records: int = Field(DEFAULT_MAX_RECORDS, gt=0)
    timeout: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0)
    transport: str = Field("stdio", description="MCP transport (stdio or http)")
    host: str = DEFAULT_MCP_HOST
    port: int = Field(DEFAULT_MCP_PORT, ge=1, le=65535)

    model_config = {"frozen": True}

    @field_validator("api_token")
    @classmethod
    def validate_api_token(cls, v: str) -> str:
        trimmed = v.strip()
        if not trimmed:
            raise ValueError("api_token cannot be empty")
        return trimmed

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        trimmed = v.strip().rstrip("/")
        if not trimmed.startswith(("http://", "https://")):
            raise ValueError("api_url must be an http(s) URL")
        return trimmed

    @field_validator("transport")
    @classmethod
    def validate_transport(cls, v: str) -> str:
        transport = v.strip().lower()
        if transport not in VALID_TRANSPORTS:
            raise ValueError(f"transport must be one of {list(VALID_TRANSPORTS)}")
        return transport

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            Validated settings

        Raises:
            ConfigError: If the API token is missing or a value is invalid
        """
        env = os.environ if environ is None else environ

        api_token = env.get("PIPEDRIVE_API_TOKEN", "").strip()
        if not api_token:
            raise ConfigError(
                "Pipedrive API token not configured. "
                "Set PIPEDRIVE_API_TOKEN environment variable."
            )

        values: dict[str, object] = {"api_token": api_token}

        api_url = env.get("PIPEDRIVE_API_URL")
        domain = env.get("PIPEDRIVE_DOMAIN")
        if api_url:
            values["api_url"] = api_url
        elif domain:
            values["api_url"] = f"https://{domain.strip()}.pipedrive.com/api/v1"

        optional = {
            "page_size": "PIPEDRIVE_PAGE_SIZE",
            "max_records": "PIPEDRIVE_MAX_RECORDS",
            "timeout": "PIPEDRIVE_TIMEOUT",
            "transport": "MCP_TRANSPORT",
            "host": "MCP_HOST",
            "port": "MCP_PORT",
        }
        for field_name, env_name in optional.items():
            raw = env.get(env_name)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def load_settings() -> Settings:
    """Load settings from the current process environment."""
    return Settings.from_env()
