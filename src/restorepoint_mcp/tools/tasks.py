"""MCP tools for tracked tasks: get_task_status, list_tasks, cancel_task, delete_task."""

# pyright: reportUnusedFunction=false

from types import SimpleNamespace
from typing import Any

from fastmcp import Context, FastMCP

from ..errors import ErrorCode, RestorepointError, create_success_response
from ..tasks.models import TaskFilter, TaskInfo, TaskStatus, TaskType
from ..tasks.task_manager import TaskManager
from .common import resolve_context, run_tool


def _require_task(task_manager: TaskManager, task_id: str) -> TaskInfo:
    task = task_manager.get_task(task_id)
    if task is None:
        msg = f"Task with ID '{task_id}' not found"
        raise RestorepointError(ErrorCode.TASK_NOT_FOUND, msg, 404, {"taskId": task_id})
    return task


def _parse_filter(status: str | None, task_type: str | None) -> TaskFilter:
    try:
        return TaskFilter(
            status=TaskStatus(status) if status else None,
            type=TaskType(task_type) if task_type else None,
        )
    except ValueError as exc:
        raise RestorepointError(ErrorCode.VALIDATION_INVALID_INPUT, str(exc), 400) from exc


def register(app: FastMCP, *, deps: SimpleNamespace) -> None:
    """Register the task tools on the provided app instance.

    Args:
        app: The FastMCP application instance to add the tools to.
        deps: Dependencies namespace with ``get_context``.

    """

    @app.tool(
        name="get_task_status",
        description="Return the status, progress and result of a task started by create_backup or execute_command.",
        annotations={
            "title": "Get task status",
            "readOnlyHint": True,
        },
    )
    async def get_task_status(ctx: Context, task_id: str) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            task_manager = resolve_context(ctx, deps).task_manager
            task = _require_task(task_manager, task_id)
            return create_success_response(task.to_dict())

        return await run_tool(ctx, "get_task_status", body, taskId=task_id)

    @app.tool(
        name="list_tasks",
        description="Return tracked tasks, optionally filtered by status and type.",
        annotations={
            "title": "List tasks",
            "readOnlyHint": True,
        },
    )
    async def list_tasks(ctx: Context, status: str | None = None, task_type: str | None = None) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            task_manager = resolve_context(ctx, deps).task_manager
            tasks = task_manager.get_tasks(_parse_filter(status, task_type))
            return create_success_response(
                [task.to_dict() for task in tasks],
                f"Found {len(tasks)} task(s)",
            )

        return await run_tool(ctx, "list_tasks", body)

    @app.tool(
        name="cancel_task",
        description="Cancel a pending or running task. The remote operation itself is not interrupted.",
        annotations={
            "title": "Cancel task",
            "readOnlyHint": False,
        },
    )
    async def cancel_task(ctx: Context, task_id: str) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            task_manager = resolve_context(ctx, deps).task_manager
            task = _require_task(task_manager, task_id)
            cancelled = task_manager.cancel_task(task_id)
            message = "Task cancelled" if cancelled else f"Task already finished with status '{task.status}'"
            return create_success_response({"taskId": task_id, "cancelled": cancelled}, message)

        return await run_tool(ctx, "cancel_task", body, taskId=task_id)

    @app.tool(
        name="delete_task",
        description="Remove a finished task from tracking.",
        annotations={
            "title": "Delete task",
            "readOnlyHint": False,
            "destructiveHint": True,
        },
    )
    async def delete_task(ctx: Context, task_id: str) -> dict[str, Any]:
        async def body() -> dict[str, Any]:
            task_manager = resolve_context(ctx, deps).task_manager
            _require_task(task_manager, task_id)
            task_manager.delete_task(task_id)
            return create_success_response({"taskId": task_id, "deleted": True}, "Task deleted")

        return await run_tool(ctx, "delete_task", body, taskId=task_id)


__all__ = ["register"]
