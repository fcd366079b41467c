"""Pytest fixtures for Pipedrive MCP tests.

Provides:
- Settings and environment fixtures
- Sample Pipedrive records (deal, person, organization, pipeline, stage, lead)
- Page response builder
- Mock Pipedrive client patched into the tool handlers
- FastMCP server with all tools and prompts registered
"""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from fastmcp import FastMCP

from pipedrive_mcp.config import Settings

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

TEST_API_TOKEN = "test_pipedrive_token_12345"

CLIENT_METHODS = (
    "list_page",
    "get_record",
    "search",
    "search_items",
    "list_pipelines",
    "list_stages",
    "get_deal_changelog",
)


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture
def env_api_token() -> Generator[str, None, None]:
    """Provide a test API token via environment variable."""
    with patch.dict(os.environ, {"PIPEDRIVE_API_TOKEN": TEST_API_TOKEN}):
        yield TEST_API_TOKEN


@pytest.fixture
def settings() -> Settings:
    """Settings with the default page size and ceiling."""
    return Settings(api_token=TEST_API_TOKEN)


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def sample_deal() -> dict[str, Any]:
    """Sample deal record from Pipedrive API."""
    return {
        "id": 42,
        "title": "Acme Corp expansion",
        "value": 12500,
        "currency": "USD",
        "status": "open",
        "stage_id": 3,
        "pipeline_id": 1,
        "person_id": {"value": 7, "name": "Jane Smith"},
        "org_id": {"value": 9, "name": "Acme Corp"},
        "5f2e4a1b9c": "custom field value",
    }


@pytest.fixture
def sample_person() -> dict[str, Any]:
    """Sample person record from Pipedrive API."""
    return {
        "id": 7,
        "name": "Jane Smith",
        "email": [{"value": "jane@acme.example", "primary": True}],
        "phone": [{"value": "+1 555 0100", "primary": True}],
        "org_id": {"value": 9, "name": "Acme Corp"},
    }


@pytest.fixture
def sample_organization() -> dict[str, Any]:
    """Sample organization record from Pipedrive API."""
    return {"id": 9, "name": "Acme Corp", "address": "1 Main St", "people_count": 4}


@pytest.fixture
def sample_pipelines() -> list[dict[str, Any]]:
    """Two pipelines from GET /pipelines."""
    return [
        {"id": 1, "name": "Sales", "active": True},
        {"id": 2, "name": "Partners", "active": True},
    ]


@pytest.fixture
def sample_stages() -> dict[int, list[dict[str, Any]]]:
    """Stages keyed by pipeline ID."""
    return {
        1: [
            {"id": 1, "name": "Qualified", "pipeline_id": 1, "order_nr": 1},
            {"id": 2, "name": "Proposal", "pipeline_id": 1, "order_nr": 2},
        ],
        2: [
            {"id": 5, "name": "Intro", "pipeline_id": 2, "order_nr": 1},
        ],
    }


@pytest.fixture
def sample_lead() -> dict[str, Any]:
    """Sample lead record from Pipedrive API."""
    return {
        "id": "adf21080-0e10-11eb-879b-05d71fb426ec",
        "title": "Acme Corp lead",
        "is_archived": False,
        "person_id": 7,
        "organization_id": 9,
    }


# =============================================================================
# Mock Response Builders
# =============================================================================


def make_page(items: list[Any], more: bool | None = False) -> dict[str, Any]:
    """Build a Pipedrive collection page. ``more=None`` omits pagination metadata."""
    page: dict[str, Any] = {"success": True, "data": items}
    if more is not None:
        page["additional_data"] = {
            "pagination": {"start": 0, "limit": len(items), "more_items_in_collection": more}
        }
    return page


@pytest.fixture
def page_factory() -> Callable[..., dict[str, Any]]:
    """Expose make_page to tests."""
    return make_page


def create_mock_response(
    status_code: int = 200,
    json_data: Any = None,
    text: str = "",
) -> httpx.Response:
    """Create a mock httpx.Response object."""
    content = b""
    if json_data is not None:
        content = json.dumps(json_data).encode("utf-8")
    elif text:
        content = text.encode("utf-8")

    return httpx.Response(
        status_code=status_code,
        content=content,
        request=httpx.Request("GET", "https://acme.pipedrive.com/api/v1/deals"),
    )


def create_mock_client() -> MagicMock:
    """Create a mock Pipedrive client with every resource operation mocked."""
    mock_client = MagicMock()
    for name in CLIENT_METHODS:
        setattr(mock_client, name, AsyncMock())
    return mock_client


# =============================================================================
# Client and Server Fixtures
# =============================================================================


@pytest.fixture
def reset_pipedrive_client() -> Generator[None, None, None]:
    """Reset the shared Pipedrive clients between tests."""
    import pipedrive_mcp.client as client_module

    old_clients = dict(client_module._pipedrive_clients)
    client_module._pipedrive_clients.clear()

    yield

    client_module._pipedrive_clients.clear()
    client_module._pipedrive_clients.update(old_clients)


@pytest.fixture
def mock_client() -> Generator[MagicMock, None, None]:
    """Patch the client used by the tool handlers."""
    client = create_mock_client()
    with patch("pipedrive_mcp.tools.get_pipedrive_client", return_value=client):
        yield client


@pytest.fixture
def mcp_server(settings: Settings, reset_pipedrive_client: None) -> FastMCP:
    """Create a FastMCP server with Pipedrive tools and prompts registered."""
    from pipedrive_mcp.prompts import register_pipedrive_prompts
    from pipedrive_mcp.tools import register_pipedrive_tools

    mcp = FastMCP("test-pipedrive")
    register_pipedrive_tools(mcp, settings)
    register_pipedrive_prompts(mcp)
    return mcp
