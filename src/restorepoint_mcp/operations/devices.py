"""Operations for Restorepoint managed devices.

Device records are passed through as-is: creates and updates forward the
caller's fields unchanged and return whatever record the server sends back.
"""

from typing import Any

from fastmcp import Context

from ..client.api_client import ApiClient, RequestOptions
from ..endpoints import DEFAULT_PAGE_SIZE, DEVICES, device_by_id
from .common import ListResult, build_query, fetch_item, fetch_list, require_fields, require_id, write_result


async def list_devices(  # noqa: PLR0913
    client: ApiClient,
    *,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    sort_by: str = "name",
    sort_order: str = "asc",
    device_type: str | None = None,
    enabled: bool | None = None,
    search: str | None = None,
    ctx: Context | None = None,
) -> ListResult:
    """Return one page of devices, optionally filtered by type, state or search term."""
    return await fetch_list(
        client,
        DEVICES,
        resource="devices",
        limit=limit,
        offset=offset,
        filters={
            "sort": sort_by,
            "order": sort_order,
            "type": device_type,
            "enabled": enabled,
            "search": search,
        },
        ctx=ctx,
    )


async def get_device(
    client: ApiClient,
    device_id: str,
    *,
    include_connections: bool = False,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """Return the details of a single device."""
    device_id = require_id(device_id, "Device ID")
    return await fetch_item(
        client,
        device_by_id(device_id),
        label=f"device {device_id}",
        params={"includeConnections": include_connections},
        ctx=ctx,
    )


async def create_device(client: ApiClient, fields: dict[str, Any], *, ctx: Context | None = None) -> dict[str, Any]:
    """Create a device from ``fields`` (name, type, credentials and so on).

    The POST is sent once, without retries.
    """
    payload = require_fields(fields, "Device fields are required to create a device")
    if ctx is not None:
        await ctx.info("Creating device.")
    response = await client.post(DEVICES, payload, RequestOptions(skip_retry=True))
    return write_result(response, label="device", done="created")


async def update_device(
    client: ApiClient,
    device_id: str,
    fields: dict[str, Any],
    *,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """Replace the given fields of an existing device."""
    device_id = require_id(device_id, "Device ID")
    payload = require_fields(fields, "At least one field must be provided for update")
    if ctx is not None:
        await ctx.info(f"Updating device {device_id}.")
    response = await client.put(device_by_id(device_id), payload)
    return write_result(response, label=f"device {device_id}", done="updated")


async def delete_device(
    client: ApiClient,
    device_id: str,
    *,
    force: bool = False,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """Delete a device; ``force`` also removes a device that still has backups."""
    device_id = require_id(device_id, "Device ID")
    if ctx is not None:
        await ctx.info(f"Deleting device {device_id}.")
    response = await client.delete(device_by_id(device_id), RequestOptions(params=build_query(force=force)))
    return write_result(response, label=f"device {device_id}", done="deleted")


__all__ = ["create_device", "delete_device", "get_device", "list_devices", "update_device"]
