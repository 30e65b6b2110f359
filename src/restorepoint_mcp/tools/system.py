"""MCP tool: test_connection."""

# pyright: reportUnusedFunction=false

from types import SimpleNamespace
from typing import Any

from fastmcp import Context, FastMCP

from ..errors import create_success_response
from .common import resolve_context, run_tool


def register(app: FastMCP, *, deps: SimpleNamespace) -> None:
    """Register the test_connection tool on the provided app instance.

    Args:
        app: The FastMCP application instance to add the tool to.
        deps: Dependencies namespace with ``get_context``.

    """

    @app.tool(
        name="test_connection",
        description="Check that the Restorepoint server is reachable and report the token state.",
        annotations={
            "title": "Test Restorepoint connection",
            "readOnlyHint": True,
        },
    )
    async def test_connection(ctx: Context) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            app_ctx = resolve_context(ctx, deps)
            await ctx.info("Testing connection to the Restorepoint server.")
            connected = await app_ctx.api_client.test_connection()
            return create_success_response(
                {
                    "connected": connected,
                    "apiBaseUrl": app_ctx.config.api_base_url,
                    "token": app_ctx.token_manager.get_token_info(),
                },
                "Connection successful" if connected else "Connection failed",
            )

        return await run_tool(ctx, "test_connection", body)


__all__ = ["register"]
