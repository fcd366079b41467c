"""Integration tests for Pipedrive MCP tools.

These tests require:
- PIPEDRIVE_API_TOKEN environment variable to be set
- PIPEDRIVE_DOMAIN (or PIPEDRIVE_API_URL) for company-specific accounts
- A Pipedrive account with at least one pipeline

All calls are read-only. Run with: pytest -m integration tests/integration
"""

from __future__ import annotations

import json
import os

import pytest
from fastmcp import Client

PIPEDRIVE_API_TOKEN = os.getenv("PIPEDRIVE_API_TOKEN")

requires_pipedrive = pytest.mark.skipif(
    not PIPEDRIVE_API_TOKEN,
    reason="PIPEDRIVE_API_TOKEN not configured",
)

# Far above any real record ID
MISSING_DEAL_ID = 2_000_000_000


@pytest.fixture
def live_server(reset_pipedrive_client):
    """Server built from the real environment."""
    from pipedrive_mcp.config import load_settings
    from pipedrive_mcp.server import create_server

    return create_server(load_settings())


async def call(server, tool_name: str, arguments: dict | None = None):
    async with Client(server) as client:
        return await client.call_tool(tool_name, arguments or {}, raise_on_error=False)


@pytest.mark.integration
@requires_pipedrive
class TestPipedriveReadOnly:
    """Tool calls against the live Pipedrive API."""

    @pytest.mark.asyncio
    async def test_get_pipelines(self, live_server):
        result = await call(live_server, "get_pipelines")

        assert result.is_error is False
        payload = json.loads(result.content[0].text)
        assert payload["total_count"] == len(payload["pipelines"])

    @pytest.mark.asyncio
    async def test_get_stages_tagged(self, live_server):
        result = await call(live_server, "get_stages")

        assert result.is_error is False
        payload = json.loads(result.content[0].text)
        for stage in payload["stages"]:
            assert "pipeline_name" in stage

    @pytest.mark.asyncio
    async def test_deal_count_matches_listing(self, live_server):
        counted = json.loads((await call(live_server, "get_deals", {"count_only": True})).content[0].text)
        listed = json.loads((await call(live_server, "get_deals")).content[0].text)

        if counted["terminated_early"] or listed["terminated_early"]:
            pytest.skip("Account exceeds the record ceiling")
        assert counted["total_count"] == len(listed["deals"])

    @pytest.mark.asyncio
    async def test_missing_deal_is_error(self, live_server):
        result = await call(live_server, "get_deal", {"deal_id": MISSING_DEAL_ID})

        assert result.is_error is True
        assert "not found" in result.content[0].text

    @pytest.mark.asyncio
    async def test_search_all(self, live_server):
        result = await call(live_server, "search_all", {"term": "test", "item_types": "deal,person"})

        assert result.is_error is False
