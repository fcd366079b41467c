"""Entry point for running the MCP server as a module.

Supports two transports:
    - stdio (default): for MCP hosts that spawn the server as a subprocess
    - http: streamable HTTP transport on MCP_HOST:MCP_PORT

Usage:
    python -m pipedrive_mcp
    python -m pipedrive_mcp stdio
    python -m pipedrive_mcp http

Environment variables:
    PIPEDRIVE_API_TOKEN: Pipedrive API token (required)
    PIPEDRIVE_DOMAIN: Company domain, e.g. "acme" for acme.pipedrive.com
    MCP_TRANSPORT: Default transport when no mode argument is given
    MCP_HOST / MCP_PORT: Bind address for http mode (default: 0.0.0.0:8001)
"""

from __future__ import annotations

import sys

from dotenv import load_dotenv

from .config import VALID_TRANSPORTS, ConfigError, load_settings
from .logging import log


def main(argv: list[str] | None = None) -> None:
    """Load settings, build the server and serve until the host disconnects."""
    load_dotenv()
    args = sys.argv[1:] if argv is None else argv

    try:
        settings = load_settings()
    except ConfigError as e:
        log.error("startup_failed", error=str(e))
        sys.exit(1)

    mode = args[0].lower() if args else settings.transport
    if mode not in VALID_TRANSPORTS:
        log.error("startup_failed", error=f"Unknown mode: {mode}")
        print(f"Usage: python -m pipedrive_mcp [{'|'.join(VALID_TRANSPORTS)}]", file=sys.stderr)
        sys.exit(2)

    from .server import create_server

    server = create_server(settings)

    log.info("pipedrive_mcp_starting", transport=mode, api_url=settings.api_url)
    if mode == "http":
        server.run(transport="http", host=settings.host, port=settings.port)
    else:
        server.run(transport="stdio")


if __name__ == "__main__":
    main()
