"""MCP resources for the Restorepoint server.

Exposes in-process task tracking as a read-only resource.
"""

# pyright: reportUnusedFunction=false

from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

from fastmcp import Context, FastMCP


def register(app: FastMCP, *, deps: SimpleNamespace) -> None:
    """Register resources on the provided app instance.

    Args:
        app: The FastMCP application instance to add resources to.
        deps: Dependencies namespace containing ``get_context``.

    """

    @app.resource(
        uri="restorepoint://tasks",
        name="Restorepoint Tasks",
        description="Return a JSON list of tracked backup and command tasks.",
        mime_type="application/json",
        tags={"tasks"},
    )
    async def get_tasks(ctx: Context) -> dict[str, Any]:
        app_ctx = deps.get_context(ctx)
        tasks = app_ctx.task_manager.get_tasks()
        return {
            "retrieved_at": datetime.now(UTC).isoformat(),
            "api_base_url": app_ctx.config.api_base_url,
            "count": len(tasks),
            "tasks": [task.to_dict() for task in tasks],
        }


__all__ = ["register"]
