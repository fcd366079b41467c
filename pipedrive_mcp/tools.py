"""Pipedrive MCP tools for read-only CRM access.

Tool shapes:
- List: walk every page of a collection endpoint (deals, persons,
  organizations, leads), optionally counting only
- Get by ID: one record (deal, person, organization, pipeline)
- Search: one search call by term
- Composite: stages of every pipeline, tolerant of per-pipeline failures

Every failure below a tool is logged and converted to ToolError, which
FastMCP returns to the host as an error-flagged result.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field, ValidationError

from .client import PipedriveAPIError, PipedriveClient, get_pipedrive_client
from .config import Settings
from .logging import generate_correlation_id, log, log_tool_error, log_tool_result
from .models import (
    DealStatus,
    ItemSearchInput,
    LeadArchivedStatus,
    OpaqueRecord,
    SearchInput,
    validate_record_id,
)
from .pagination import AggregationResult, aggregate_pages

TOOL_NAMES = (
    "get_deals",
    "get_deal",
    "get_deal_history",
    "search_deals",
    "get_persons",
    "get_person",
    "search_persons",
    "get_organizations",
    "get_organization",
    "search_organizations",
    "get_pipelines",
    "get_pipeline",
    "get_stages",
    "get_leads",
    "search_leads",
    "search_all",
)

MAX_HISTORY_LIMIT = 500


def _convert_to_tool_error(e: Exception, operation: str) -> ToolError:
    """Convert exceptions to user-friendly ToolError.

    Args:
        e: Original exception
        operation: Description of the operation that failed

    Returns:
        ToolError with user-friendly message
    """
    if isinstance(e, ToolError):
        return e
    if isinstance(e, PipedriveAPIError):
        return ToolError(f"{operation} failed: {e}")
    if isinstance(e, ValueError):
        return ToolError(f"Validation error: {e}")
    return ToolError(f"{operation} failed: {type(e).__name__}")


def _validation_message(e: ValidationError) -> str:
    """First error message of a pydantic ValidationError."""
    errors = e.errors()
    if not errors:
        return str(e)
    return str(errors[0].get("msg", e)).removeprefix("Value error, ")


def _list_payload(
    resource: str,
    aggregation: AggregationResult,
    filters: dict[str, Any],
) -> dict[str, Any]:
    """Build the result of a list tool from an aggregation."""
    payload: dict[str, Any] = {"total_count": aggregation.count, **filters}
    payload["pages_fetched"] = aggregation.pages_fetched
    payload["terminated_early"] = aggregation.terminated_early
    if aggregation.count_only:
        payload["message"] = f"Found {aggregation.count} {resource}"
    else:
        payload[resource] = aggregation.items
    return payload


async def _collect(
    settings: Settings,
    tool_name: str,
    resource: str,
    operation: str,
    count_only: bool,
    query: dict[str, Any] | None = None,
    filters: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Run the pagination loop for a list tool.

    Args:
        settings: Server settings (page size and ceiling)
        tool_name: Tool name for logging
        resource: Collection path and result key, e.g. "deals"
        operation: Operation label for error messages
        count_only: Count records instead of returning them
        query: Extra query parameters sent with every page
        filters: Filters echoed in the result

    Returns:
        List payload with total_count and items or a count message
    """
    filters = filters or {}
    params = {"count_only": count_only, **filters}
    start_time = time.perf_counter()
    correlation_id = generate_correlation_id()

    try:
        client = get_pipedrive_client(settings)

        async def fetch(start: int, limit: int) -> dict:
            return await client.list_page(
                resource, start, limit, params=query, correlation_id=correlation_id
            )

        aggregation = await aggregate_pages(
            fetch,
            page_size=settings.page_size,
            max_records=settings.max_records,
            count_only=count_only,
            resource=resource,
            correlation_id=correlation_id,
        )

        result = _list_payload(resource, aggregation, filters)
        log_tool_result(tool_name, params, result, start_time, correlation_id)
        return result

    except Exception as e:
        log_tool_error(tool_name, params, e, start_time, correlation_id)
        raise _convert_to_tool_error(e, operation) from e


async def _fetch_record(
    settings: Settings,
    tool_name: str,
    resource: str,
    label: str,
    record_id: int,
) -> OpaqueRecord:
    """Fetch one record by ID.

    Not found (HTTP 404/410 or an empty ``data``) is reported as ToolError.
    """
    id_field = f"{label.lower()}_id"
    params = {id_field: record_id}

    if not validate_record_id(record_id):
        raise ToolError(f"Invalid {id_field}: must be a positive integer")

    start_time = time.perf_counter()
    correlation_id = generate_correlation_id()

    try:
        client = get_pipedrive_client(settings)
        response = await client.get_record(resource, record_id, correlation_id=correlation_id)

        record = response.get("data") if isinstance(response, dict) else None
        if not isinstance(record, dict) or not record:
            raise ToolError(f"{label} {record_id} not found")

        log_tool_result(tool_name, params, record, start_time, correlation_id)
        return record

    except ToolError as e:
        log_tool_error(tool_name, params, e, start_time, correlation_id)
        raise
    except PipedriveAPIError as e:
        log_tool_error(tool_name, params, e, start_time, correlation_id)
        if e.is_not_found:
            raise ToolError(f"{label} {record_id} not found") from e
        raise _convert_to_tool_error(e, f"Get {label.lower()} {record_id}") from e
    except Exception as e:
        log_tool_error(tool_name, params, e, start_time, correlation_id)
        raise _convert_to_tool_error(e, f"Get {label.lower()} {record_id}") from e


async def _run_search(
    settings: Settings,
    tool_name: str,
    operation: str,
    params: dict[str, Any],
    call: Callable[[PipedriveClient, str], Awaitable[dict]],
) -> dict[str, Any]:
    """Run a single search call and unwrap its ``data``."""
    start_time = time.perf_counter()
    correlation_id = generate_correlation_id()

    try:
        client = get_pipedrive_client(settings)
        response = await call(client, correlation_id)

        data = response.get("data") if isinstance(response, dict) else None
        if isinstance(data, dict):
            result = data
        else:
            result = {"items": data or []}

        log_tool_result(tool_name, params, result, start_time, correlation_id)
        return result

    except Exception as e:
        log_tool_error(tool_name, params, e, start_time, correlation_id)
        raise _convert_to_tool_error(e, operation) from e


def _search_input(term: str) -> SearchInput:
    try:
        return SearchInput(term=term)
    except ValidationError as e:
        raise ToolError(f"Invalid search term: {_validation_message(e)}") from e


# =============================================================================
# MCP Tool Registration
# =============================================================================


def register_pipedrive_tools(mcp: FastMCP, settings: Settings) -> None:
    """Register all Pipedrive tools with the MCP server.

    Args:
        mcp: Server to register the tools on
        settings: Settings shared by every tool (client, page size, ceiling)
    """

    # =========================================================================
    # Deals
    # =========================================================================

    @mcp.tool()
    async def get_deals(
        status: Annotated[
            str | None,
            Field(
                description=(
                    "Filter by deal status: open, won, lost, deleted, "
                    "all_not_deleted (default: all_not_deleted)"
                )
            ),
        ] = None,
        count_only: Annotated[
            bool, Field(description="Return only the count of deals")
        ] = False,
    ) -> dict[str, Any]:
        """Get all deals from Pipedrive including custom fields.

        Walks every page of the deals collection up to the configured
        record ceiling; terminated_early is true when the ceiling was hit.
        """
        status_filter = DealStatus.ALL_NOT_DELETED.value
        if status:
            if not DealStatus.validate(status):
                raise ToolError(
                    f"Invalid status '{status}'. Valid values: {DealStatus.values()}"
                )
            status_filter = status.strip().lower()

        return await _collect(
            settings,
            "get_deals",
            "deals",
            "Get deals",
            count_only,
            query={"status": status_filter},
            filters={"status_filter": status_filter},
        )

    @mcp.tool()
    async def get_deal(
        deal_id: Annotated[int, Field(description="Pipedrive deal ID")],
    ) -> dict[str, Any]:
        """Get a specific deal by ID including custom fields."""
        return await _fetch_record(settings, "get_deal", "deals", "Deal", deal_id)

    @mcp.tool()
    async def get_deal_history(
        deal_id: Annotated[int, Field(description="Pipedrive deal ID")],
        limit: Annotated[
            int, Field(description="Number of history items to return (default 100, max 500)")
        ] = 100,
        cursor: Annotated[
            str | None, Field(description="Cursor from a previous call's next_cursor")
        ] = None,
    ) -> dict[str, Any]:
        """Get the change history of a specific deal.

        Returns field updates, stage changes and who made each change, one
        page at a time; pass next_cursor back as cursor for the next page.
        """
        tool_name = "get_deal_history"
        params = {"deal_id": deal_id, "limit": limit, "cursor": cursor}

        if not validate_record_id(deal_id):
            raise ToolError("Invalid deal_id: must be a positive integer")

        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise ToolError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}")

        start_time = time.perf_counter()
        correlation_id = generate_correlation_id()

        try:
            client = get_pipedrive_client(settings)
            response = await client.get_deal_changelog(
                deal_id, limit, cursor=cursor, correlation_id=correlation_id
            )

            history = response.get("data") or []
            additional_data = response.get("additional_data") or {}

            result = {
                "deal_id": deal_id,
                "history_count": len(history),
                "next_cursor": additional_data.get("next_cursor"),
                "history": history,
            }

            log_tool_result(tool_name, params, result, start_time, correlation_id)
            return result

        except PipedriveAPIError as e:
            log_tool_error(tool_name, params, e, start_time, correlation_id)
            if e.is_not_found:
                raise ToolError(f"Deal {deal_id} not found") from e
            raise _convert_to_tool_error(e, f"Get deal {deal_id} history") from e
        except Exception as e:
            log_tool_error(tool_name, params, e, start_time, correlation_id)
            raise _convert_to_tool_error(e, f"Get deal {deal_id} history") from e

    @mcp.tool()
    async def search_deals(
        term: Annotated[str, Field(description="Search term for deals")],
    ) -> dict[str, Any]:
        """Search deals by title, notes and custom fields."""
        search = _search_input(term)
        return await _run_search(
            settings,
            "search_deals",
            "Search deals",
            {"term": search.term},
            lambda client, corr_id: client.search("deals", search.term, correlation_id=corr_id),
        )

    # =========================================================================
    # Persons
    # =========================================================================

    @mcp.tool()
    async def get_persons(
        count_only: Annotated[
            bool, Field(description="Return only the count of persons")
        ] = False,
    ) -> dict[str, Any]:
        """Get all persons from Pipedrive including custom fields."""
        return await _collect(settings, "get_persons", "persons", "Get persons", count_only)

    @mcp.tool()
    async def get_person(
        person_id: Annotated[int, Field(description="Pipedrive person ID")],
    ) -> dict[str, Any]:
        """Get a specific person by ID including custom fields."""
        return await _fetch_record(settings, "get_person", "persons", "Person", person_id)

    @mcp.tool()
    async def search_persons(
        term: Annotated[str, Field(description="Search term for persons")],
    ) -> dict[str, Any]:
        """Search persons by name, email, phone and custom fields."""
        search = _search_input(term)
        return await _run_search(
            settings,
            "search_persons",
            "Search persons",
            {"term": search.term},
            lambda client, corr_id: client.search("persons", search.term, correlation_id=corr_id),
        )

    # =========================================================================
    # Organizations
    # =========================================================================

    @mcp.tool()
    async def get_organizations(
        count_only: Annotated[
            bool, Field(description="Return only the count of organizations")
        ] = False,
    ) -> dict[str, Any]:
        """Get all organizations from Pipedrive including custom fields."""
        return await _collect(
            settings, "get_organizations", "organizations", "Get organizations", count_only
        )

    @mcp.tool()
    async def get_organization(
        organization_id: Annotated[int, Field(description="Pipedrive organization ID")],
    ) -> dict[str, Any]:
        """Get a specific organization by ID including custom fields."""
        return await _fetch_record(
            settings, "get_organization", "organizations", "Organization", organization_id
        )

    @mcp.tool()
    async def search_organizations(
        term: Annotated[str, Field(description="Search term for organizations")],
    ) -> dict[str, Any]:
        """Search organizations by name, address and custom fields."""
        search = _search_input(term)
        return await _run_search(
            settings,
            "search_organizations",
            "Search organizations",
            {"term": search.term},
            lambda client, corr_id: client.search(
                "organizations", search.term, correlation_id=corr_id
            ),
        )

    # =========================================================================
    # Pipelines and Stages
    # =========================================================================

    @mcp.tool()
    async def get_pipelines() -> dict[str, Any]:
        """Get all pipelines from Pipedrive."""
        tool_name = "get_pipelines"
        params: dict[str, Any] = {}
        start_time = time.perf_counter()
        correlation_id = generate_correlation_id()

        try:
            client = get_pipedrive_client(settings)
            response = await client.list_pipelines(correlation_id=correlation_id)

            pipelines = response.get("data") or []
            result = {"total_count": len(pipelines), "pipelines": pipelines}

            log_tool_result(tool_name, params, result, start_time, correlation_id)
            return result

        except Exception as e:
            log_tool_error(tool_name, params, e, start_time, correlation_id)
            raise _convert_to_tool_error(e, "Get pipelines") from e

    @mcp.tool()
    async def get_pipeline(
        pipeline_id: Annotated[int, Field(description="Pipedrive pipeline ID")],
    ) -> dict[str, Any]:
        """Get a specific pipeline by ID."""
        return await _fetch_record(settings, "get_pipeline", "pipelines", "Pipeline", pipeline_id)

    @mcp.tool()
    async def get_stages() -> dict[str, Any]:
        """Get all stages from Pipedrive, tagged with their pipeline name.

        Stages are fetched pipeline by pipeline. A pipeline whose stages
        cannot be fetched is skipped and listed in failed_pipelines.
        """
        tool_name = "get_stages"
        params: dict[str, Any] = {}
        start_time = time.perf_counter()
        correlation_id = generate_correlation_id()

        try:
            client = get_pipedrive_client(settings)
            pipelines_response = await client.list_pipelines(correlation_id=correlation_id)
            pipelines = pipelines_response.get("data") or []

            stages: list[OpaqueRecord] = []
            failed_pipelines: list[Any] = []

            for pipeline in pipelines:
                if not isinstance(pipeline, dict):
                    continue
                pipeline_id = pipeline.get("id")

                try:
                    stages_response = await client.list_stages(
                        pipeline_id, correlation_id=correlation_id
                    )
                except Exception as e:
                    log.warning(
                        "stage_fetch_failed",
                        pipeline_id=pipeline_id,
                        error_type=(
                            e.error_type.value
                            if isinstance(e, PipedriveAPIError)
                            else type(e).__name__
                        ),
                        error=str(e)[:200],
                        correlation_id=correlation_id,
                    )
                    failed_pipelines.append(pipeline_id)
                    continue

                pipeline_stages = stages_response.get("data") if isinstance(stages_response, dict) else None
                for stage in pipeline_stages or []:
                    if isinstance(stage, dict):
                        stages.append({**stage, "pipeline_name": pipeline.get("name")})

            result = {
                "total_count": len(stages),
                "stages": stages,
                "failed_pipelines": failed_pipelines,
            }

            log_tool_result(tool_name, params, result, start_time, correlation_id)
            return result

        except Exception as e:
            log_tool_error(tool_name, params, e, start_time, correlation_id)
            raise _convert_to_tool_error(e, "Get stages") from e

    # =========================================================================
    # Leads
    # =========================================================================

    @mcp.tool()
    async def get_leads(
        archived_status: Annotated[
            str | None,
            Field(
                description=(
                    "Filter by archive state: archived, not_archived, all "
                    "(default: not_archived)"
                )
            ),
        ] = None,
        count_only: Annotated[
            bool, Field(description="Return only the count of leads")
        ] = False,
    ) -> dict[str, Any]:
        """Get all leads from Pipedrive."""
        archived_filter = LeadArchivedStatus.NOT_ARCHIVED.value
        if archived_status:
            if not LeadArchivedStatus.validate(archived_status):
                raise ToolError(
                    f"Invalid archived_status '{archived_status}'. "
                    f"Valid values: {LeadArchivedStatus.values()}"
                )
            archived_filter = archived_status.strip().lower()

        return await _collect(
            settings,
            "get_leads",
            "leads",
            "Get leads",
            count_only,
            query={"archived_status": archived_filter},
            filters={"archived_status_filter": archived_filter},
        )

    @mcp.tool()
    async def search_leads(
        term: Annotated[str, Field(description="Search term for leads")],
    ) -> dict[str, Any]:
        """Search leads by title, notes and custom fields."""
        search = _search_input(term)
        return await _run_search(
            settings,
            "search_leads",
            "Search leads",
            {"term": search.term},
            lambda client, corr_id: client.search("leads", search.term, correlation_id=corr_id),
        )

    # =========================================================================
    # Search across item types
    # =========================================================================

    @mcp.tool()
    async def search_all(
        term: Annotated[str, Field(description="Search term")],
        item_types: Annotated[
            str | None,
            Field(
                description=(
                    "Comma-separated list of item types to search "
                    "(deal,person,organization,product,file,activity,lead,project,mail_attachment)"
                )
            ),
        ] = None,
    ) -> dict[str, Any]:
        """Search across all item types (deals, persons, organizations, etc.)."""
        try:
            search = ItemSearchInput(term=term, item_types=item_types)
        except ValidationError as e:
            raise ToolError(f"Invalid search input: {_validation_message(e)}") from e

        query = search.query_params()
        return await _run_search(
            settings,
            "search_all",
            "Search",
            query,
            lambda client, corr_id: client.search_items(query, correlation_id=corr_id),
        )

    log.info("pipedrive_tools_registered", tools=list(TOOL_NAMES))
