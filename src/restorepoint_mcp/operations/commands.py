"""Operations for commands run against managed devices."""

from typing import Any

from fastmcp import Context

from ..client.api_client import ApiClient
from ..endpoints import COMMAND_EXECUTE, COMMANDS, DEFAULT_PAGE_SIZE, command_by_id
from ..errors import ErrorCode, RestorepointError
from ..tasks.models import TaskType
from ..tasks.runner import TaskRunner
from ..tasks.task_manager import TaskManager
from .common import ListResult, fetch_item, fetch_list, new_task_id, normalize_ids, require_id, submit_job


async def list_commands(  # noqa: PLR0913
    client: ApiClient,
    *,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    sort_by: str = "Created",
    sort_order: str = "desc",
    device_id: str | None = None,
    status: str | None = None,
    ctx: Context | None = None,
) -> ListResult:
    """Return one page of command runs, optionally for one device or status."""
    return await fetch_list(
        client,
        COMMANDS,
        resource="commands",
        limit=limit,
        offset=offset,
        filters={
            "sort": sort_by,
            "order": sort_order,
            "deviceId": device_id,
            "status": status,
        },
        ctx=ctx,
    )


async def get_command(client: ApiClient, command_id: str, *, ctx: Context | None = None) -> dict[str, Any]:
    """Return the details and output of a single command run."""
    command_id = require_id(command_id, "Command ID")
    return await fetch_item(client, command_by_id(command_id), label=f"command {command_id}", ctx=ctx)


def start_command(  # noqa: PLR0913
    client: ApiClient,
    runner: TaskRunner,
    task_manager: TaskManager,
    *,
    command: str,
    device_ids: list[str | int] | None = None,
    device_id: str | int | None = None,
    variables: dict[str, str] | None = None,
    command_type: str = "ad-hoc",
) -> dict[str, Any]:
    """Run ``command`` on one or more devices as a tracked task.

    Raises:
        RestorepointError: For missing devices or command, or when the task
            cannot be registered.

    """
    devices = normalize_ids(device_ids, device_id)
    if not devices:
        msg = "Device ID or Device IDs are required to execute command"
        raise RestorepointError(ErrorCode.VALIDATION_MISSING_FIELD, msg, 400)
    command = require_id(command, "Command")

    payload: dict[str, Any] = {"commandType": command_type, "command": command, "deviceIds": devices}
    if variables:
        payload["variables"] = variables
    task_id = new_task_id("command")

    async def job() -> dict[str, Any]:
        return await submit_job(client, COMMAND_EXECUTE, payload)

    runner.start(task_id, TaskType.COMMAND, f"Executing command on {len(devices)} device(s)", job)
    return task_manager.create_async_result(
        task_id,
        f"Command execution started for {len(devices)} device(s)",
        data={"deviceIds": devices, "command": command, "commandType": command_type},
    )


__all__ = ["get_command", "list_commands", "start_command"]
