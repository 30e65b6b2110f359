"""Common utilities for Restorepoint operations modules.

This module contains the pagination, query-building and response-unwrapping
helpers shared by the devices, backups and commands operations.
"""

import logging
import math
import uuid
from typing import Any

from fastmcp import Context

from ..client.api_client import ApiClient, RequestOptions
from ..client.responses import ApiResponse
from ..endpoints import MAX_PAGE_SIZE
from ..errors import ErrorCode, RestorepointError

logger = logging.getLogger("restorepoint_mcp.operations.common")

type ListResult = dict[str, Any]


def validate_pagination(limit: int, offset: int) -> None:
    """Validate list paging arguments.

    Raises:
        RestorepointError: ``VALIDATION_OUT_OF_RANGE`` for a limit outside
            1..1000 or a negative offset.

    """
    if limit < 1 or limit > MAX_PAGE_SIZE:
        msg = f"Limit must be between 1 and {MAX_PAGE_SIZE}"
        raise RestorepointError(ErrorCode.VALIDATION_OUT_OF_RANGE, msg, 400, {"limit": limit})
    if offset < 0:
        msg = "Offset must be non-negative"
        raise RestorepointError(ErrorCode.VALIDATION_OUT_OF_RANGE, msg, 400, {"offset": offset})


def require_id(value: str | None, field_name: str) -> str:
    """Return ``value`` stripped, raising ``VALIDATION_MISSING_FIELD`` when blank."""
    cleaned = (value or "").strip()
    if not cleaned:
        msg = f"{field_name} is required"
        raise RestorepointError(ErrorCode.VALIDATION_MISSING_FIELD, msg, 400, {"field": field_name})
    return cleaned


def build_query(**params: Any) -> dict[str, Any]:
    """Build query parameters, dropping unset values and lower-casing booleans."""
    query: dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        query[key] = str(value).lower() if isinstance(value, bool) else value
    return query


def build_pagination_metadata(total: int, limit: int, offset: int) -> dict[str, Any]:
    """Return the paging summary reported by list tools."""
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "hasMore": offset + limit < total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def _ensure_success(response: ApiResponse, failure_message: str) -> None:
    if not response.success:
        raise RestorepointError(
            ErrorCode.NETWORK_SERVER_ERROR,
            response.message or failure_message,
            502,
            {"errors": response.errors} if response.errors else None,
        )


def unwrap_items(data: Any, *keys: str) -> list[Any]:
    """Extract the item list from a list payload.

    Lists are returned as-is; objects are searched for the first of ``keys``
    (then ``data``) holding a list.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in (*keys, "data"):
            items = data.get(key)
            if isinstance(items, list):
                return items
    return []


def unwrap_item(data: Any) -> Any:
    """Return the record of a single-item payload, unwrapping a ``data`` key."""
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        return data["data"]
    return data


async def fetch_list(  # noqa: PLR0913
    client: ApiClient,
    endpoint: str,
    *,
    resource: str,
    limit: int,
    offset: int,
    filters: dict[str, Any] | None = None,
    ctx: Context | None = None,
) -> ListResult:
    """Fetch one page of ``endpoint`` and summarize it for a list tool.

    Args:
        client: The Restorepoint API client.
        endpoint: Collection path, e.g. ``/devices``.
        resource: Plural resource name used in messages (e.g. ``devices``).
        limit: Page size (1..1000).
        offset: Number of records to skip.
        filters: Additional query parameters; unset values are dropped.
        ctx: FastMCP context for progress logging.

    Returns:
        ``{success, data, metadata, message}`` with ``metadata`` built by
        ``build_pagination_metadata``.

    Raises:
        RestorepointError: For invalid paging or a failed request.

    """
    validate_pagination(limit, offset)
    params = build_query(limit=limit, offset=offset, **(filters or {}))
    if ctx is not None:
        await ctx.info(f"Fetching {resource} (limit={limit}, offset={offset}).")

    response = await client.get(endpoint, RequestOptions(params=params))
    _ensure_success(response, f"Failed to retrieve {resource} from Restorepoint")

    items = unwrap_items(response.data, resource)
    api_total = response.metadata.total if response.metadata else None
    total = api_total if api_total is not None else len(items)
    api_offset = response.metadata.offset if response.metadata else None
    page_offset = api_offset if api_offset is not None else offset

    logger.info("Retrieved %d of %d %s.", len(items), total, resource)
    return {
        "success": True,
        "data": items,
        "metadata": build_pagination_metadata(total, limit, page_offset),
        "message": f"Successfully retrieved {len(items)} of {total} {resource}",
    }


async def fetch_item(
    client: ApiClient,
    endpoint: str,
    *,
    label: str,
    params: dict[str, Any] | None = None,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """Fetch a single record and wrap it in a success payload.

    Raises:
        RestorepointError: ``RESOURCE_NOT_FOUND`` for unknown ids, or any
            other request failure.

    """
    if ctx is not None:
        await ctx.info(f"Fetching {label}.")
    response = await client.get(endpoint, RequestOptions(params=build_query(**(params or {}))))
    _ensure_success(response, f"Failed to retrieve {label}")
    if response.data is None:
        msg = f"{label} not found"
        raise RestorepointError(ErrorCode.RESOURCE_NOT_FOUND, msg, 404)
    return {
        "success": True,
        "data": unwrap_item(response.data),
        "message": f"Successfully retrieved {label}",
    }


async def submit_job(client: ApiClient, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
    """POST an execution request and return the remote job record.

    Raises:
        RestorepointError: If the request fails or the server rejects the job.

    """
    response = await client.post(endpoint, payload, RequestOptions(skip_retry=True))
    _ensure_success(response, f"Request to {endpoint} was rejected")
    data = unwrap_item(response.data)
    return data if isinstance(data, dict) else {"result": data}


def require_fields(fields: dict[str, Any] | None, message: str) -> dict[str, Any]:
    """Return a copy of ``fields``, raising ``VALIDATION_MISSING_FIELD`` when empty."""
    if not fields:
        raise RestorepointError(ErrorCode.VALIDATION_MISSING_FIELD, message, 400)
    return dict(fields)


def write_result(response: ApiResponse, *, label: str, done: str) -> dict[str, Any]:
    """Wrap the record returned by a create, update or delete request.

    Raises:
        RestorepointError: ``NETWORK_SERVER_ERROR`` when the server reports a failure.

    """
    _ensure_success(response, f"Restorepoint rejected the request for {label}")
    logger.info("Successfully %s %s.", done, label)
    return {
        "success": True,
        "data": unwrap_item(response.data),
        "message": f"Successfully {done} {label}",
    }


def normalize_ids(values: list[str | int] | None, single: str | int | None = None) -> list[str]:
    """Merge a list of ids and an optional single id into unique, non-blank strings."""
    merged: list[str] = []
    for value in [*(values or []), *([single] if single is not None else [])]:
        text = str(value).strip()
        if text and text not in merged:
            merged.append(text)
    return merged


def new_task_id(prefix: str) -> str:
    """Return a unique id for a tracked task, e.g. ``backup-1f2e...``."""
    return f"{prefix}-{uuid.uuid4().hex}"


__all__ = [
    "ListResult",
    "build_pagination_metadata",
    "build_query",
    "fetch_item",
    "fetch_list",
    "new_task_id",
    "normalize_ids",
    "require_fields",
    "require_id",
    "submit_job",
    "unwrap_item",
    "unwrap_items",
    "validate_pagination",
    "write_result",
]
