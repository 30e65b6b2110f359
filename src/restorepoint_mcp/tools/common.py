"""Common utilities for MCP tool registration.

Tools receive a ``deps`` namespace whose ``get_context(ctx)`` returns the
running ``AppContext``. ``run_tool`` executes a tool body and converts any
failure into the standard error envelope, so tool callers never see raw
exceptions.
"""

from collections.abc import Awaitable, Callable
from types import SimpleNamespace
from typing import Any

from fastmcp import Context

from ..context import AppContext
from ..errors import handle_error


def resolve_context(ctx: Context, deps: SimpleNamespace) -> AppContext:
    """Return the ``AppContext`` serving this request."""
    return deps.get_context(ctx)


async def run_tool(
    ctx: Context,
    tool_name: str,
    body: Callable[[], Awaitable[dict[str, Any]]],
    **info: Any,
) -> dict[str, Any]:
    """Await ``body`` and turn any exception into an error envelope.

    Args:
        ctx: FastMCP context, used to surface failures to the client.
        tool_name: Tool name recorded in logs.
        body: Zero-argument coroutine function producing the tool result.
        **info: Extra fields recorded with the error.

    Returns:
        The tool result, or ``{"success": False, "error": {...}}``.

    """
    try:
        return await body()
    except Exception as exc:  # noqa: BLE001 - returned as an error envelope
        envelope = handle_error(exc, tool_name, **info)
        await ctx.warning(f"{tool_name} failed: {envelope['error']['message']}")
        return envelope


__all__ = ["resolve_context", "run_tool"]
