"""Offset pagination over Pipedrive collection endpoints.

Pipedrive list endpoints return pages shaped like::

    {
        "success": true,
        "data": [...],
        "additional_data": {
            "pagination": {"start": 0, "limit": 500, "more_items_in_collection": true}
        }
    }

aggregate_pages() drives such an endpoint from offset 0 until the
collection is exhausted or a record ceiling is reached. Page fetches are
sequential, failures propagate unchanged, and items keep fetch order.
Records added or removed upstream between two page fetches can show up as
duplicates or gaps; they are returned as fetched.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .config import DEFAULT_MAX_RECORDS, DEFAULT_PAGE_SIZE
from .logging import log
from .models import OpaqueRecord

# fetch(start, limit) -> raw page response body
PageFetcher = Callable[[int, int], Awaitable[Any]]


@dataclass(frozen=True)
class CollectionPage:
    """One page of a collection endpoint."""

    items: list[OpaqueRecord]
    more_items: bool
    has_collection: bool = True

    @classmethod
    def from_response(cls, body: Any) -> CollectionPage:
        """Parse a raw page response.

        A response without a list under ``data`` is an empty, final page.
        A missing or non-boolean ``more_items_in_collection`` flag means
        no further pages.
        """
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            return cls(items=[], more_items=False, has_collection=False)

        additional_data = body.get("additional_data")
        pagination = additional_data.get("pagination") if isinstance(additional_data, dict) else None
        more_items = (
            isinstance(pagination, dict)
            and pagination.get("more_items_in_collection") is True
        )
        return cls(items=data, more_items=more_items)


@dataclass
class AggregationResult:
    """Outcome of one aggregation run."""

    items: list[OpaqueRecord] = field(default_factory=list)
    count: int = 0
    pages_fetched: int = 0
    terminated_early: bool = False
    count_only: bool = False


async def aggregate_pages(
    fetch: PageFetcher,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_records: int = DEFAULT_MAX_RECORDS,
    count_only: bool = False,
    resource: str = "records",
    correlation_id: str | None = None,
) -> AggregationResult:
    """Collect (or count) every record of a paged collection.

    Args:
        fetch: Coroutine function returning the raw response for (start, limit)
        page_size: Records requested per page
        max_records: Ceiling on the offset; reaching it stops the loop
        count_only: Count records instead of keeping them
        resource: Resource name for logging
        correlation_id: Request correlation ID for logging

    Returns:
        AggregationResult with terminated_early set when the ceiling
        stopped a collection that still reported more items

    Raises:
        ValueError: If page_size or max_records is not positive
        Exception: Whatever fetch raises, unchanged
    """
    if page_size < 1:
        raise ValueError("page_size must be a positive integer")
    if max_records < 1:
        raise ValueError("max_records must be a positive integer")

    result = AggregationResult(count_only=count_only)
    start = 0
    has_more = True

    while has_more and start < max_records:
        body = await fetch(start, page_size)
        result.pages_fetched += 1

        page = CollectionPage.from_response(body)
        if not page.has_collection:
            log.warning(
                "pagination_missing_collection",
                resource=resource,
                start=start,
                correlation_id=correlation_id,
            )

        result.count += len(page.items)
        if not count_only:
            result.items.extend(page.items)

        log.debug(
            "pagination_page",
            resource=resource,
            page=result.pages_fetched,
            start=start,
            page_items=len(page.items),
            total=result.count,
            more_items=page.more_items,
            correlation_id=correlation_id,
        )

        if page.more_items:
            start += page_size
        else:
            has_more = False

    if has_more:
        result.terminated_early = True
        log.warning(
            "pagination_ceiling_reached",
            resource=resource,
            max_records=max_records,
            total=result.count,
            correlation_id=correlation_id,
        )

    log.info(
        "pagination_complete",
        resource=resource,
        pages_fetched=result.pages_fetched,
        total=result.count,
        count_only=count_only,
        terminated_early=result.terminated_early,
        correlation_id=correlation_id,
    )
    return result
