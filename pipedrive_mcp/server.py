"""MCP server exposing read-only Pipedrive tools and prompts."""

from __future__ import annotations

from fastmcp import FastMCP

from .config import Settings, load_settings
from .prompts import register_pipedrive_prompts
from .tools import register_pipedrive_tools


def create_server(settings: Settings | None = None) -> FastMCP:
    """Create and configure the Pipedrive MCP server.

    Args:
        settings: Server settings. Loaded from the environment when omitted.

    Raises:
        ConfigError: If settings are omitted and the environment is incomplete
    """
    settings = settings or load_settings()

    mcp = FastMCP(
        name="pipedrive-mcp-server",
        instructions=(
            "Read-only access to Pipedrive CRM: deals, persons, organizations, "
            "pipelines, stages and leads."
        ),
    )

    register_pipedrive_tools(mcp, settings)
    register_pipedrive_prompts(mcp)

    return mcp
