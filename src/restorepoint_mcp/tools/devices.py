"""MCP tools: list_devices, get_device, create_device, update_device and delete_device."""

# pyright: reportUnusedFunction=false

from types import SimpleNamespace
from typing import Any

from fastmcp import Context, FastMCP

from ..endpoints import DEFAULT_PAGE_SIZE
from .common import resolve_context, run_tool


def register(app: FastMCP, *, deps: SimpleNamespace) -> None:
    """Register the device tools on the provided app instance.

    Args:
        app: The FastMCP application instance to add the tools to.
        deps: Dependencies namespace with ``get_context``, ``list_devices``,
              ``get_device``, ``create_device``, ``update_device`` and
              ``delete_device``.

    """

    @app.tool(
        name="list_devices",
        description=(
            "Return a page of devices managed by Restorepoint. "
            "Supports filtering by device type, enabled state and a search term."
        ),
        annotations={
            "title": "List managed devices",
            "readOnlyHint": True,
        },
    )
    async def list_devices(  # noqa: PLR0913
        ctx: Context,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        sort_by: str = "name",
        sort_order: str = "asc",
        device_type: str | None = None,
        enabled: bool | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            return await deps.list_devices(
                app_ctx.api_client,
                limit=limit,
                offset=offset,
                sort_by=sort_by,
                sort_order=sort_order,
                device_type=device_type,
                enabled=enabled,
                search=search,
                ctx=ctx,
            )

        return await run_tool(ctx, "list_devices", body)

    @app.tool(
        name="get_device",
        description="Return the configuration and status details of a single Restorepoint device.",
        annotations={
            "title": "Get device details",
            "readOnlyHint": True,
        },
    )
    async def get_device(ctx: Context, device_id: str, include_connections: bool = False) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            return await deps.get_device(
                app_ctx.api_client,
                device_id,
                include_connections=include_connections,
                ctx=ctx,
            )

        return await run_tool(ctx, "get_device", body, deviceId=device_id)

    @app.tool(
        name="create_device",
        description=(
            "Create a device in Restorepoint. ``fields`` is sent as the device record, "
            "e.g. name, type, ipAddress, hostname, credentials, description and enabled."
        ),
        annotations={
            "title": "Create device",
            "readOnlyHint": False,
        },
    )
    async def create_device(ctx: Context, fields: dict[str, Any]) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            return await deps.create_device(app_ctx.api_client, fields, ctx=ctx)

        return await run_tool(ctx, "create_device", body)

    @app.tool(
        name="update_device",
        description="Update an existing Restorepoint device with the provided fields.",
        annotations={
            "title": "Update device",
            "readOnlyHint": False,
        },
    )
    async def update_device(ctx: Context, device_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            return await deps.update_device(app_ctx.api_client, device_id, fields, ctx=ctx)

        return await run_tool(ctx, "update_device", body, deviceId=device_id)

    @app.tool(
        name="delete_device",
        description="Delete a device from Restorepoint. Set force to delete a device that still has backups.",
        annotations={
            "title": "Delete device",
            "readOnlyHint": False,
            "destructiveHint": True,
        },
    )
    async def delete_device(ctx: Context, device_id: str, force: bool = False) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            return await deps.delete_device(app_ctx.api_client, device_id, force=force, ctx=ctx)

        return await run_tool(ctx, "delete_device", body, deviceId=device_id)


__all__ = ["register"]
