"""Pipedrive data models and validation utilities.

Provides:
- Deal status, lead archived status and search item type enums
- Error type classification
- Input validation functions
- Pydantic models for structured tool input

Upstream records are not modeled: the adapter passes them through as
opaque JSON objects.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, TypeAlias

from pydantic import BaseModel, Field, field_validator

# Upstream record passed through unmodified
OpaqueRecord: TypeAlias = dict[str, Any]


# =============================================================================
# Deal Status
# =============================================================================


class DealStatus(str, Enum):
    """Deal status filters accepted by GET /deals."""

    OPEN = "open"
    WON = "won"
    LOST = "lost"
    DELETED = "deleted"
    ALL_NOT_DELETED = "all_not_deleted"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid status values."""
        return [status.value for status in cls]

    @classmethod
    def validate(cls, status: str) -> bool:
        """Check if a status name is valid."""
        return status.strip().lower() in cls.values()


# =============================================================================
# Lead Archived Status
# =============================================================================


class LeadArchivedStatus(str, Enum):
    """Archive filters accepted by GET /leads."""

    ARCHIVED = "archived"
    NOT_ARCHIVED = "not_archived"
    ALL = "all"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid archived status values."""
        return [status.value for status in cls]

    @classmethod
    def validate(cls, status: str) -> bool:
        """Check if an archived status is valid."""
        return status.strip().lower() in cls.values()


# =============================================================================
# Search Item Types
# =============================================================================


class ItemType(str, Enum):
    """Item types searchable through GET /itemSearch."""

    DEAL = "deal"
    PERSON = "person"
    ORGANIZATION = "organization"
    PRODUCT = "product"
    FILE = "file"
    ACTIVITY = "activity"
    LEAD = "lead"
    PROJECT = "project"
    MAIL_ATTACHMENT = "mail_attachment"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid item type values."""
        return [item_type.value for item_type in cls]


# =============================================================================
# Input Validation
# =============================================================================


def validate_record_id(record_id: Any) -> bool:
    """Validate a Pipedrive numeric record ID.

    Args:
        record_id: ID to validate

    Returns:
        True if the ID is a positive integer, False otherwise
    """
    if isinstance(record_id, bool) or not isinstance(record_id, int):
        return False
    return record_id > 0


def validate_non_empty_string(value: str, field_name: str) -> str:
    """Validate that a string is non-empty.

    Args:
        value: String value to validate
        field_name: Name of the field for error messages

    Returns:
        The trimmed string value

    Raises:
        ValueError: If string is empty or not a string
    """
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field_name} cannot be empty")
    return trimmed


def parse_item_types(item_types: str | None) -> list[str]:
    """Split a comma-separated item type list and validate each entry.

    Args:
        item_types: Comma-separated item types, or None for all types

    Returns:
        Normalized item types in the given order, without duplicates

    Raises:
        ValueError: If any entry is not a known item type
    """
    if item_types is None:
        return []

    valid = ItemType.values()
    parsed: list[str] = []
    for raw in item_types.split(","):
        item_type = raw.strip().lower()
        if not item_type:
            continue
        if item_type not in valid:
            raise ValueError(f"Invalid item type: '{raw.strip()}'. Valid types: {valid}")
        if item_type not in parsed:
            parsed.append(item_type)
    return parsed


# =============================================================================
# Pydantic Models for Structured Input
# =============================================================================


class SearchInput(BaseModel):
    """Input model for a search by term."""

    term: str = Field(..., description="Search term")

    @field_validator("term")
    @classmethod
    def validate_term(cls, v: str) -> str:
        return validate_non_empty_string(v, "term")


class ItemSearchInput(SearchInput):
    """Input model for a search across item types."""

    item_types: list[str] = Field(default_factory=list, description="Item types to search")

    @field_validator("item_types", mode="before")
    @classmethod
    def validate_item_types(cls, v: Any) -> list[str]:
        if v is None or isinstance(v, str):
            return parse_item_types(v)
        return parse_item_types(",".join(v))

    def query_params(self) -> dict[str, Any]:
        """Build the query parameters for GET /itemSearch."""
        params: dict[str, Any] = {"term": self.term}
        if self.item_types:
            params["item_types"] = ",".join(self.item_types)
        return params


# =============================================================================
# Error Types for Classification
# =============================================================================


class PipedriveErrorType(str, Enum):
    """Classification of Pipedrive errors."""

    AUTHENTICATION = "authentication"
    PAYMENT_REQUIRED = "payment_required"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    BAD_REQUEST = "bad_request"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN = "unknown"


def classify_http_error(status_code: int) -> PipedriveErrorType:
    """Classify an HTTP status code into an error type.

    Args:
        status_code: HTTP response status code

    Returns:
        PipedriveErrorType classification
    """
    if status_code == 401:
        return PipedriveErrorType.AUTHENTICATION
    elif status_code == 402:
        return PipedriveErrorType.PAYMENT_REQUIRED
    elif status_code == 403:
        return PipedriveErrorType.PERMISSION_DENIED
    elif status_code in (404, 410):
        return PipedriveErrorType.NOT_FOUND
    elif status_code == 422:
        return PipedriveErrorType.VALIDATION
    elif status_code == 429:
        return PipedriveErrorType.RATE_LIMITED
    elif 400 <= status_code < 500:
        return PipedriveErrorType.BAD_REQUEST
    elif 500 <= status_code < 600:
        return PipedriveErrorType.SERVICE_UNAVAILABLE
    else:
        return PipedriveErrorType.UNKNOWN
