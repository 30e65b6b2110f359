"""Unit tests for the MCP tool wrappers.

Validates dependency injection, argument forwarding and error envelopes through
the tool registration layer (without requiring a running FastMCP app).
"""

from collections.abc import Awaitable, Callable
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import ManualScheduler
from fastmcp import Context

from restorepoint_mcp.config import AppConfig
from restorepoint_mcp.context import AppContext
from restorepoint_mcp.errors import ErrorCode, RestorepointError
from restorepoint_mcp.tasks.models import TaskStatus, TaskType
from restorepoint_mcp.tools.backups import register as register_backup_tools
from restorepoint_mcp.tools.commands import register as register_command_tools
from restorepoint_mcp.tools.devices import register as register_device_tools
from restorepoint_mcp.tools.system import register as register_system_tools
from restorepoint_mcp.tools.tasks import register as register_task_tools

type ToolFunc = Callable[..., Awaitable[dict[str, Any]]]


class _FakeApp:
    """Minimal stand-in for FastMCP app to capture registered tools."""

    def __init__(self) -> None:
        self.tools: dict[str, ToolFunc] = {}
        self.annotations: dict[str, dict[str, Any]] = {}

    def tool(
        self,
        *,
        name: str,
        description: str,
        annotations: dict[str, Any] | None = None,
    ) -> Callable[[ToolFunc], ToolFunc]:
        """Register a tool by name and return a decorator that captures the function."""

        def _decorator(func: ToolFunc) -> ToolFunc:
            _ = description
            self.tools[name] = func
            self.annotations[name] = annotations or {}
            return func

        return _decorator


@pytest.fixture
def app_ctx(app_config: AppConfig, scheduler: ManualScheduler) -> AppContext:
    """Return an AppContext whose API client is a mock."""
    ctx = AppContext.build(app_config, scheduler)
    ctx._api_client = MagicMock()  # noqa: SLF001
    ctx._api_client.test_connection = AsyncMock(return_value=True)  # noqa: SLF001
    return ctx


@pytest.fixture
def deps(app_ctx: AppContext) -> SimpleNamespace:
    """Return a dependencies namespace with mocked operations."""
    return SimpleNamespace(
        get_context=MagicMock(return_value=app_ctx),
        list_devices=AsyncMock(return_value={"success": True, "data": []}),
        get_device=AsyncMock(return_value={"success": True, "data": {"id": "1"}}),
        create_device=AsyncMock(return_value={"success": True, "data": {"id": "9"}}),
        update_device=AsyncMock(return_value={"success": True, "data": {"id": "1"}}),
        delete_device=AsyncMock(return_value={"success": True, "data": {"id": "1"}}),
        list_backups=AsyncMock(return_value={"success": True, "data": []}),
        get_backup=AsyncMock(return_value={"success": True, "data": {"id": "b1"}}),
        start_backup=MagicMock(return_value={"success": True, "taskId": "backup-1", "message": "started"}),
        list_commands=AsyncMock(return_value={"success": True, "data": []}),
        get_command=AsyncMock(return_value={"success": True, "data": {"id": "c1"}}),
        start_command=MagicMock(return_value={"success": True, "taskId": "command-1", "message": "started"}),
    )


@pytest.fixture
def app(deps: SimpleNamespace) -> _FakeApp:
    """Return a fake app with every tool registered."""
    fake = _FakeApp()
    for register in (
        register_device_tools,
        register_backup_tools,
        register_command_tools,
        register_task_tools,
        register_system_tools,
    ):
        register(fake, deps=deps)  # type: ignore[arg-type]
    return fake


@pytest.fixture
def mock_ctx() -> Context:
    """Return a Context-like AsyncMock for tool logging."""
    ctx = MagicMock(spec=Context)
    ctx.info = AsyncMock()
    ctx.warning = AsyncMock()
    return ctx


def test_all_tools_registered(app: _FakeApp) -> None:
    """Every tool should be registered with a read-only hint."""
    assert set(app.tools) == {
        "list_devices",
        "get_device",
        "create_device",
        "update_device",
        "delete_device",
        "list_backups",
        "get_backup",
        "create_backup",
        "list_commands",
        "get_command",
        "execute_command",
        "get_task_status",
        "list_tasks",
        "cancel_task",
        "delete_task",
        "test_connection",
    }
    assert app.annotations["list_devices"]["readOnlyHint"] is True
    assert app.annotations["execute_command"]["readOnlyHint"] is False
    assert app.annotations["delete_device"]["destructiveHint"] is True


@pytest.mark.asyncio
async def test_list_devices_forwards_arguments(
    app: _FakeApp,
    deps: SimpleNamespace,
    app_ctx: AppContext,
    mock_ctx: Context,
) -> None:
    """List tools should pass the API client and filters through."""
    result = await app.tools["list_devices"](mock_ctx, limit=10, offset=20, search="core")

    assert result == {"success": True, "data": []}
    deps.get_context.assert_called_once_with(mock_ctx)
    call = deps.list_devices.await_args
    assert call.args == (app_ctx.api_client,)
    assert call.kwargs["limit"] == 10
    assert call.kwargs["offset"] == 20
    assert call.kwargs["search"] == "core"
    assert call.kwargs["ctx"] is mock_ctx


@pytest.mark.asyncio
async def test_device_write_tools_forward_fields(
    app: _FakeApp,
    deps: SimpleNamespace,
    app_ctx: AppContext,
    mock_ctx: Context,
) -> None:
    """Device write tools should pass ids and fields through unchanged."""
    fields = {"name": "core-sw", "type": "cisco-ios"}

    created = await app.tools["create_device"](mock_ctx, fields=fields)
    updated = await app.tools["update_device"](mock_ctx, device_id="1", fields={"enabled": False})
    deleted = await app.tools["delete_device"](mock_ctx, device_id="1", force=True)

    assert created["data"] == {"id": "9"}
    assert updated["success"] is True
    assert deleted["success"] is True
    deps.create_device.assert_awaited_once_with(app_ctx.api_client, fields, ctx=mock_ctx)
    deps.update_device.assert_awaited_once_with(app_ctx.api_client, "1", {"enabled": False}, ctx=mock_ctx)
    deps.delete_device.assert_awaited_once_with(app_ctx.api_client, "1", force=True, ctx=mock_ctx)


@pytest.mark.asyncio
async def test_tool_errors_become_envelopes(app: _FakeApp, deps: SimpleNamespace, mock_ctx: Context) -> None:
    """Raised errors should be returned as error envelopes and reported to the client."""
    deps.get_backup.side_effect = RestorepointError(ErrorCode.RESOURCE_NOT_FOUND, "Backup b9 not found", 404)

    result = await app.tools["get_backup"](mock_ctx, backup_id="b9")

    assert result["success"] is False
    assert result["error"]["code"] == "RESOURCE_NOT_FOUND"
    assert result["error"]["message"] == "Backup b9 not found"
    mock_ctx.warning.assert_awaited_once()


@pytest.mark.asyncio
async def test_unexpected_errors_become_internal_errors(
    app: _FakeApp,
    deps: SimpleNamespace,
    mock_ctx: Context,
) -> None:
    """Untyped exceptions should map to SYSTEM_INTERNAL_ERROR."""
    deps.list_commands.side_effect = KeyError("boom")

    result = await app.tools["list_commands"](mock_ctx)

    assert result["error"]["code"] == "SYSTEM_INTERNAL_ERROR"


@pytest.mark.asyncio
async def test_create_backup_uses_task_services(
    app: _FakeApp,
    deps: SimpleNamespace,
    app_ctx: AppContext,
    mock_ctx: Context,
) -> None:
    """create_backup should hand the runner and task manager to the operation."""
    result = await app.tools["create_backup"](mock_ctx, device_ids=["1"], backup_type="full")

    assert result["taskId"] == "backup-1"
    args = deps.start_backup.call_args.args
    assert args == (app_ctx.api_client, app_ctx.task_runner, app_ctx.task_manager)
    assert deps.start_backup.call_args.kwargs["device_ids"] == ["1"]
    mock_ctx.info.assert_awaited_once()


@pytest.mark.asyncio
async def test_execute_command_forwards_command(
    app: _FakeApp,
    deps: SimpleNamespace,
    mock_ctx: Context,
) -> None:
    """execute_command should forward the command and variables."""
    result = await app.tools["execute_command"](mock_ctx, command="show run", device_id="7", variables={"a": "b"})

    assert result["taskId"] == "command-1"
    kwargs = deps.start_command.call_args.kwargs
    assert kwargs["command"] == "show run"
    assert kwargs["device_id"] == "7"
    assert kwargs["variables"] == {"a": "b"}


class TestTaskTools:
    """Tools backed directly by the TaskManager."""

    @pytest.mark.asyncio
    async def test_get_task_status(self, app: _FakeApp, app_ctx: AppContext, mock_ctx: Context) -> None:
        """Known tasks are returned as snapshots; unknown ids yield TASK_NOT_FOUND."""
        app_ctx.task_manager.create_task("t1", TaskType.BACKUP, "Backing up")

        found = await app.tools["get_task_status"](mock_ctx, task_id="t1")
        missing = await app.tools["get_task_status"](mock_ctx, task_id="nope")

        assert found["success"] is True
        assert found["data"]["taskId"] == "t1"
        assert found["data"]["status"] == "pending"
        assert missing["error"]["code"] == "TASK_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_list_tasks_filters(self, app: _FakeApp, app_ctx: AppContext, mock_ctx: Context) -> None:
        """Status and type filters are applied; bad values are validation errors."""
        app_ctx.task_manager.create_task("b1", TaskType.BACKUP)
        app_ctx.task_manager.create_task("c1", TaskType.COMMAND)

        result = await app.tools["list_tasks"](mock_ctx, task_type="command")
        invalid = await app.tools["list_tasks"](mock_ctx, status="sleeping")

        assert [task["taskId"] for task in result["data"]] == ["c1"]
        assert result["message"] == "Found 1 task(s)"
        assert invalid["error"]["code"] == "VALIDATION_INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_cancel_task(self, app: _FakeApp, app_ctx: AppContext, mock_ctx: Context) -> None:
        """Cancelling reports whether the task was still open."""
        app_ctx.task_manager.create_task("t1", TaskType.BACKUP)

        first = await app.tools["cancel_task"](mock_ctx, task_id="t1")
        second = await app.tools["cancel_task"](mock_ctx, task_id="t1")

        assert first["data"] == {"taskId": "t1", "cancelled": True}
        assert second["data"]["cancelled"] is False
        assert app_ctx.task_manager.get_task("t1").status is TaskStatus.CANCELLED  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_delete_task(self, app: _FakeApp, app_ctx: AppContext, mock_ctx: Context) -> None:
        """Only finished tasks can be deleted."""
        app_ctx.task_manager.create_task("t1", TaskType.BACKUP)

        refused = await app.tools["delete_task"](mock_ctx, task_id="t1")
        app_ctx.task_manager.cancel_task("t1")
        deleted = await app.tools["delete_task"](mock_ctx, task_id="t1")
        missing = await app.tools["delete_task"](mock_ctx, task_id="t1")

        assert refused["error"]["code"] == "TASK_ALREADY_RUNNING"
        assert deleted["data"]["deleted"] is True
        assert missing["error"]["code"] == "TASK_NOT_FOUND"


@pytest.mark.asyncio
async def test_test_connection(app: _FakeApp, app_ctx: AppContext, mock_ctx: Context) -> None:
    """The connectivity tool should report the check result and token state."""
    app_ctx.token_manager.set_token("abc")

    result = await app.tools["test_connection"](mock_ctx)

    assert result["success"] is True
    assert result["data"]["connected"] is True
    assert result["data"]["apiBaseUrl"] == "https://rp.example.com/api/v2"
    assert result["data"]["token"]["hasToken"] is True
    assert result["message"] == "Connection successful"
