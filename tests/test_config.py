"""Tests for settings loading."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from pipedrive_mcp.config import (
    DEFAULT_API_URL,
    DEFAULT_MAX_RECORDS,
    DEFAULT_PAGE_SIZE,
    ConfigError,
    Settings,
    load_settings,
)

from .conftest import TEST_API_TOKEN


class TestSettingsFromEnv:
    """Tests for Settings.from_env."""

    def test_defaults(self):
        settings = Settings.from_env({"PIPEDRIVE_API_TOKEN": TEST_API_TOKEN})

        assert settings.api_token == TEST_API_TOKEN
        assert settings.api_url == DEFAULT_API_URL
        assert settings.page_size == DEFAULT_PAGE_SIZE == 500
        assert settings.max_records == DEFAULT_MAX_RECORDS == 10_000
        assert settings.timeout == 30.0
        assert settings.transport == "stdio"
        assert settings.port == 8001

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing_token(self, token):
        env = {} if token is None else {"PIPEDRIVE_API_TOKEN": token}

        with pytest.raises(ConfigError, match="PIPEDRIVE_API_TOKEN"):
            Settings.from_env(env)

    def test_token_trimmed(self):
        settings = Settings.from_env({"PIPEDRIVE_API_TOKEN": f"  {TEST_API_TOKEN}\n"})

        assert settings.api_token == TEST_API_TOKEN

    def test_domain(self):
        settings = Settings.from_env(
            {"PIPEDRIVE_API_TOKEN": TEST_API_TOKEN, "PIPEDRIVE_DOMAIN": "acme"}
        )

        assert settings.api_url == "https://acme.pipedrive.com/api/v1"

    def test_api_url_overrides_domain(self):
        settings = Settings.from_env(
            {
                "PIPEDRIVE_API_TOKEN": TEST_API_TOKEN,
                "PIPEDRIVE_DOMAIN": "acme",
                "PIPEDRIVE_API_URL": "http://localhost:9000/v1/",
            }
        )

        assert settings.api_url == "http://localhost:9000/v1"

    def test_optional_values(self):
        settings = Settings.from_env(
            {
                "PIPEDRIVE_API_TOKEN": TEST_API_TOKEN,
                "PIPEDRIVE_PAGE_SIZE": "100",
                "PIPEDRIVE_MAX_RECORDS": "2500",
                "PIPEDRIVE_TIMEOUT": "5.5",
                "MCP_TRANSPORT": "HTTP",
                "MCP_HOST": "127.0.0.1",
                "MCP_PORT": "9100",
            }
        )

        assert settings.page_size == 100
        assert settings.max_records == 2500
        assert settings.timeout == 5.5
        assert settings.transport == "http"
        assert settings.host == "127.0.0.1"
        assert settings.port == 9100

    def test_blank_optional_values_ignored(self):
        settings = Settings.from_env(
            {"PIPEDRIVE_API_TOKEN": TEST_API_TOKEN, "PIPEDRIVE_PAGE_SIZE": "  "}
        )

        assert settings.page_size == DEFAULT_PAGE_SIZE

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("PIPEDRIVE_PAGE_SIZE", "0"),
            ("PIPEDRIVE_PAGE_SIZE", "501"),
            ("PIPEDRIVE_PAGE_SIZE", "lots"),
            ("PIPEDRIVE_MAX_RECORDS", "0"),
            ("PIPEDRIVE_TIMEOUT", "-1"),
            ("PIPEDRIVE_API_URL", "ftp://example.com"),
            ("MCP_TRANSPORT", "sse"),
            ("MCP_PORT", "70000"),
        ],
    )
    def test_invalid_values(self, name, value):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            Settings.from_env({"PIPEDRIVE_API_TOKEN": TEST_API_TOKEN, name: value})


class TestLoadSettings:
    """Tests for load_settings."""

    def test_reads_process_environment(self, env_api_token):
        assert load_settings().api_token == env_api_token

    def test_missing_token(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError):
                load_settings()

    def test_settings_are_frozen(self, settings):
        with pytest.raises(Exception):
            settings.page_size = 10
