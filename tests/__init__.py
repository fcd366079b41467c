"""Tests for the Pipedrive MCP server.

Tests are organized by verification scope:
- test_pagination.py: Aggregation loop properties
- test_client.py: Request shaping and error classification with mocked httpx
- test_models.py: Unit tests for validation functions and Pydantic models
- test_config.py: Settings loading from the environment
- test_tools.py: Tool handlers with a mocked Pipedrive client
- test_prompts.py: Prompt catalog
- test_server.py: Server assembly and startup
"""
