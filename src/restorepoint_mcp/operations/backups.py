"""Operations for device configuration backups.

Listing and lookups are plain requests. Starting a backup is a long-running
remote job, so ``start_backup`` registers it with the ``TaskRunner`` and
returns a task id the caller can poll.
"""

from typing import Any

from fastmcp import Context

from ..client.api_client import ApiClient
from ..endpoints import BACKUP_EXECUTE, BACKUPS, DEFAULT_PAGE_SIZE, backup_by_id
from ..errors import ErrorCode, RestorepointError
from ..tasks.models import TaskType
from ..tasks.runner import TaskRunner
from ..tasks.task_manager import TaskManager
from .common import ListResult, fetch_item, fetch_list, new_task_id, normalize_ids, require_id, submit_job

BACKUP_TYPES = ("full", "incremental", "config-only", "running-config", "startup-config")


async def list_backups(  # noqa: PLR0913
    client: ApiClient,
    *,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
    device_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    ctx: Context | None = None,
) -> ListResult:
    """Return one page of backups, optionally for one device or a date range."""
    return await fetch_list(
        client,
        BACKUPS,
        resource="backups",
        limit=limit,
        offset=offset,
        filters={
            "sort": sort_by,
            "order": sort_order,
            "deviceId": device_id,
            "dateFrom": date_from,
            "dateTo": date_to,
        },
        ctx=ctx,
    )


async def get_backup(client: ApiClient, backup_id: str, *, ctx: Context | None = None) -> dict[str, Any]:
    """Return the details of a single backup."""
    backup_id = require_id(backup_id, "Backup ID")
    return await fetch_item(client, backup_by_id(backup_id), label=f"backup {backup_id}", ctx=ctx)


def start_backup(  # noqa: PLR0913
    client: ApiClient,
    runner: TaskRunner,
    task_manager: TaskManager,
    *,
    device_ids: list[str | int] | None = None,
    device_id: str | int | None = None,
    backup_type: str = "full",
) -> dict[str, Any]:
    """Start a backup of one or more devices as a tracked task.

    Returns:
        The async result carrying the ``taskId`` to poll.

    Raises:
        RestorepointError: For missing devices, an unknown backup type or when
            the task cannot be registered.

    """
    devices = normalize_ids(device_ids, device_id)
    if not devices:
        msg = "Device ID or Device IDs are required to create a backup"
        raise RestorepointError(ErrorCode.VALIDATION_MISSING_FIELD, msg, 400)
    if backup_type not in BACKUP_TYPES:
        msg = f"Backup type must be one of: {', '.join(BACKUP_TYPES)}"
        raise RestorepointError(ErrorCode.VALIDATION_INVALID_INPUT, msg, 400, {"backupType": backup_type})

    payload = {"deviceIds": devices, "backupType": backup_type}
    task_id = new_task_id("backup")

    async def job() -> dict[str, Any]:
        return await submit_job(client, BACKUP_EXECUTE, payload)

    runner.start(task_id, TaskType.BACKUP, f"Backing up {len(devices)} device(s)", job)
    return task_manager.create_async_result(
        task_id,
        f"Backup started for {len(devices)} device(s)",
        data={"deviceIds": devices, "backupType": backup_type},
    )


__all__ = ["BACKUP_TYPES", "get_backup", "list_backups", "start_backup"]
