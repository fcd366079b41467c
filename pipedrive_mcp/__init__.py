"""Pipedrive MCP Server.

Read-only MCP server for Pipedrive CRM with:
- 16 tools over deals, persons, organizations, pipelines, stages and leads
- Full pagination of collection endpoints with a configurable record ceiling
- 8 canned prompts
- x-api-token authentication via PIPEDRIVE_API_TOKEN environment variable
- Structured JSON logging with correlation IDs
"""

from .server import create_server

__all__ = ["create_server"]
__version__ = "0.1.0"
