"""Entry point for the Restorepoint MCP server.

This module wires together the FastMCP app, its lifespan and the tool
registrations. The ``AppContext`` is built from the environment when the
server starts and closed when it stops.

Registered tools:
- ``list_devices`` / ``get_device`` / ``create_device`` / ``update_device`` / ``delete_device``: managed devices
- ``list_backups`` / ``get_backup`` / ``create_backup``: configuration backups
- ``list_commands`` / ``get_command`` / ``execute_command``: device commands
- ``get_task_status`` / ``list_tasks`` / ``cancel_task`` / ``delete_task``: tracked tasks
- ``test_connection``: connectivity check
"""

import logging
import os
import signal
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import SimpleNamespace

from fastmcp import Context, FastMCP

from . import resources
from .config import AppConfig
from .context import AppContext
from .operations.backups import get_backup, list_backups, start_backup
from .operations.commands import get_command, list_commands, start_command
from .operations.devices import create_device, delete_device, get_device, list_devices, update_device
from .tools.backups import register as register_backup_tools
from .tools.commands import register as register_command_tools
from .tools.devices import register as register_device_tools
from .tools.system import register as register_system_tools
from .tools.tasks import register as register_task_tools

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(name)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("restorepoint_mcp.server")


@asynccontextmanager
async def lifespan(_server: FastMCP) -> AsyncIterator[AppContext]:
    """Build the shared services on startup and release them on shutdown."""
    config = AppConfig.from_env()
    app_ctx = AppContext.build(config)
    app_ctx.startup()
    logger.info("Starting %s %s.", config.server_name, config.version)
    try:
        yield app_ctx
    finally:
        await app_ctx.aclose()


app = FastMCP(
    name="restorepoint-mcp",
    instructions=(
        "Expose tools that manage devices, configuration backups and commands "
        "on a Restorepoint server. Backups and commands run as tasks that are "
        "polled with get_task_status."
    ),
    lifespan=lifespan,
)


def get_app_context(ctx: Context) -> AppContext:
    """Return the ``AppContext`` yielded by the lifespan for this request."""
    return ctx.request_context.lifespan_context


# Explicit re-exports for public API stability (and to satisfy linters)
__all__ = [
    "AppConfig",
    "AppContext",
    "app",
    "get_app_context",
    "handle_interrupt",
    "lifespan",
    "main",
]


def _register_capabilities() -> None:
    """Register tool and resource modules with the app instance."""
    deps = SimpleNamespace(
        get_context=get_app_context,
        list_devices=list_devices,
        get_device=get_device,
        create_device=create_device,
        update_device=update_device,
        delete_device=delete_device,
        list_backups=list_backups,
        get_backup=get_backup,
        start_backup=start_backup,
        list_commands=list_commands,
        get_command=get_command,
        start_command=start_command,
    )
    register_device_tools(app, deps=deps)
    register_backup_tools(app, deps=deps)
    register_command_tools(app, deps=deps)
    register_task_tools(app, deps=deps)
    register_system_tools(app, deps=deps)
    resources.register(app, deps=deps)


# Register all capabilities with the app instance (after function is defined)
_register_capabilities()


def handle_interrupt(signum: int, frame: object) -> None:  # noqa: ARG001
    """Handle keyboard interrupt gracefully."""
    logger.info("Received interrupt signal, shutting down...")
    sys.exit(0)


def main() -> None:
    """Entry point for the restorepoint-mcp console script."""
    signal.signal(signal.SIGINT, handle_interrupt)
    signal.signal(signal.SIGTERM, handle_interrupt)
    app.run()


if __name__ == "__main__":
    main()
