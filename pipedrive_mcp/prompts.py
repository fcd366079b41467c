"""Canned prompts for common Pipedrive questions.

Each prompt takes no arguments and renders a single user message.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from fastmcp import FastMCP
from mcp.types import PromptMessage, TextContent

from .logging import log


@dataclass(frozen=True)
class PromptTemplate:
    """A named, static prompt."""

    name: str
    description: str
    text: str

    def messages(self) -> list[PromptMessage]:
        return [PromptMessage(role="user", content=TextContent(type="text", text=self.text))]


PROMPTS: tuple[PromptTemplate, ...] = (
    PromptTemplate(
        name="list_all_deals",
        description="List all deals in Pipedrive",
        text=(
            "Please list all deals in my Pipedrive account, showing their title, "
            "value, status, and stage."
        ),
    ),
    PromptTemplate(
        name="list_all_persons",
        description="List all persons in Pipedrive",
        text=(
            "Please list all persons in my Pipedrive account, showing their name, "
            "email, phone, and organization."
        ),
    ),
    PromptTemplate(
        name="list_all_pipelines",
        description="List all pipelines in Pipedrive",
        text=(
            "Please list all pipelines in my Pipedrive account, showing their name "
            "and stages."
        ),
    ),
    PromptTemplate(
        name="analyze_deals",
        description="Analyze deals by stage",
        text=(
            "Please analyze the deals in my Pipedrive account, grouping them by stage "
            "and providing total value for each stage."
        ),
    ),
    PromptTemplate(
        name="analyze_contacts",
        description="Analyze contacts by organization",
        text=(
            "Please analyze the persons in my Pipedrive account, grouping them by "
            "organization and providing a count for each organization."
        ),
    ),
    PromptTemplate(
        name="analyze_leads",
        description="Analyze leads by status",
        text="Please search for all leads in my Pipedrive account and group them by status.",
    ),
    PromptTemplate(
        name="compare_pipelines",
        description="Compare different pipelines and their stages",
        text=(
            "Please list all pipelines in my Pipedrive account and compare them by "
            "showing the stages in each pipeline."
        ),
    ),
    PromptTemplate(
        name="find_high_value_deals",
        description="Find high-value deals",
        text=(
            "Please identify the highest value deals in my Pipedrive account and "
            "provide information about which stage they're in and which person or "
            "organization they're associated with."
        ),
    ),
)


def _render(template: PromptTemplate) -> Callable[[], list[PromptMessage]]:
    def render() -> list[PromptMessage]:
        return template.messages()

    render.__name__ = template.name
    render.__doc__ = template.description
    return render


def register_pipedrive_prompts(mcp: FastMCP) -> None:
    """Register every canned prompt with the MCP server."""
    for template in PROMPTS:
        mcp.prompt(name=template.name, description=template.description)(_render(template))

    log.info("pipedrive_prompts_registered", prompts=[template.name for template in PROMPTS])
