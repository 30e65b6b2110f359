"""MCP tools: list_backups, get_backup and create_backup.

``create_backup`` returns immediately with a ``taskId``; progress is polled
with ``get_task_status``.
"""

# pyright: reportUnusedFunction=false

from types import SimpleNamespace
from typing import Any

from fastmcp import Context, FastMCP

from ..endpoints import DEFAULT_PAGE_SIZE
from .common import resolve_context, run_tool


def register(app: FastMCP, *, deps: SimpleNamespace) -> None:
    """Register the backup tools on the provided app instance.

    Args:
        app: The FastMCP application instance to add the tools to.
        deps: Dependencies namespace with ``get_context``, ``list_backups``,
              ``get_backup`` and ``start_backup``.

    """

    @app.tool(
        name="list_backups",
        description="Return a page of configuration backups, optionally for one device or a date range.",
        annotations={
            "title": "List backups",
            "readOnlyHint": True,
        },
    )
    async def list_backups(  # noqa: PLR0913
        ctx: Context,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        device_id: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            return await deps.list_backups(
                app_ctx.api_client,
                limit=limit,
                offset=offset,
                sort_by=sort_by,
                sort_order=sort_order,
                device_id=device_id,
                date_from=date_from,
                date_to=date_to,
                ctx=ctx,
            )

        return await run_tool(ctx, "list_backups", body)

    @app.tool(
        name="get_backup",
        description="Return the details of a single configuration backup.",
        annotations={
            "title": "Get backup details",
            "readOnlyHint": True,
        },
    )
    async def get_backup(ctx: Context, backup_id: str) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            return await deps.get_backup(app_ctx.api_client, backup_id, ctx=ctx)

        return await run_tool(ctx, "get_backup", body, backupId=backup_id)

    @app.tool(
        name="create_backup",
        description=(
            "Start a configuration backup of one or more devices. "
            "Returns a taskId; poll it with get_task_status."
        ),
        annotations={
            "title": "Create backup",
            "readOnlyHint": False,
        },
    )
    async def create_backup(
        ctx: Context,
        device_ids: list[str] | None = None,
        device_id: str | None = None,
        backup_type: str = "full",
    ) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            result = deps.start_backup(
                app_ctx.api_client,
                app_ctx.task_runner,
                app_ctx.task_manager,
                device_ids=device_ids,
                device_id=device_id,
                backup_type=backup_type,
            )
            await ctx.info(f"Backup task {result['taskId']} started.")
            return result

        return await run_tool(ctx, "create_backup", body)


__all__ = ["register"]
