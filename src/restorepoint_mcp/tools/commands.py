"""MCP tools: list_commands, get_command and execute_command."""

# pyright: reportUnusedFunction=false

from types import SimpleNamespace
from typing import Any

from fastmcp import Context, FastMCP

from ..endpoints import DEFAULT_PAGE_SIZE
from .common import resolve_context, run_tool


def register(app: FastMCP, *, deps: SimpleNamespace) -> None:
    """Register the command tools on the provided app instance.

    Args:
        app: The FastMCP application instance to add the tools to.
        deps: Dependencies namespace with ``get_context``, ``list_commands``,
              ``get_command`` and ``start_command``.

    """

    @app.tool(
        name="list_commands",
        description="Return a page of command runs, optionally for one device or status.",
        annotations={
            "title": "List command runs",
            "readOnlyHint": True,
        },
    )
    async def list_commands(  # noqa: PLR0913
        ctx: Context,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        sort_by: str = "Created",
        sort_order: str = "desc",
        device_id: str | None = None,
        status: str | None = None,
    ) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            return await deps.list_commands(
                app_ctx.api_client,
                limit=limit,
                offset=offset,
                sort_by=sort_by,
                sort_order=sort_order,
                device_id=device_id,
                status=status,
                ctx=ctx,
            )

        return await run_tool(ctx, "list_commands", body)

    @app.tool(
        name="get_command",
        description="Return the details and output of a single command run.",
        annotations={
            "title": "Get command details",
            "readOnlyHint": True,
        },
    )
    async def get_command(ctx: Context, command_id: str) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            return await deps.get_command(app_ctx.api_client, command_id, ctx=ctx)

        return await run_tool(ctx, "get_command", body, commandId=command_id)

    @app.tool(
        name="execute_command",
        description=(
            "Execute a command on one or more devices. "
            "Returns a taskId; poll it with get_task_status."
        ),
        annotations={
            "title": "Execute device command",
            "readOnlyHint": False,
            "destructiveHint": True,
        },
    )
    async def execute_command(  # noqa: PLR0913
        ctx: Context,
        command: str,
        device_ids: list[str] | None = None,
        device_id: str | None = None,
        variables: dict[str, str] | None = None,
        command_type: str = "ad-hoc",
    ) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            result = deps.start_command(
                app_ctx.api_client,
                app_ctx.task_runner,
                app_ctx.task_manager,
                command=command,
                device_ids=device_ids,
                device_id=device_id,
                variables=variables,
                command_type=command_type,
            )
            await ctx.info(f"Command task {result['taskId']} started.")
            return result

        return await run_tool(ctx, "execute_command", body)


__all__ = ["register"]
