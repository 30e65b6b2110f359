"""Tracking of long-running operations that cannot be awaited in one request.

Tool handlers register a task, return its id to the caller and report progress
through ``update_task_status``; callers poll with ``get_task``. Each task is
guarded by a timeout, and terminal tasks are purged by a periodic sweep.
"""

import logging
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from ..errors import ErrorCode, RestorepointError
from ..scheduling import Scheduler, TimerHandle
from .models import (
    TaskFilter,
    TaskInfo,
    TaskOptions,
    TaskStatus,
    TaskType,
    clamp_progress,
    validate_transition,
)

logger = logging.getLogger("restorepoint_mcp.task_manager")

DEFAULT_TASK_TIMEOUT_MS = 3600000
DEFAULT_CLEANUP_INTERVAL_MS = 300000
DEFAULT_MAX_CONCURRENT_TASKS = 10
TASK_RETENTION = timedelta(hours=24)


class TaskManager:
    """In-memory registry of tracked tasks with timeouts and periodic cleanup."""

    def __init__(
        self,
        *,
        max_concurrent_tasks: int = DEFAULT_MAX_CONCURRENT_TASKS,
        default_timeout_ms: int = DEFAULT_TASK_TIMEOUT_MS,
        cleanup_interval_ms: int = DEFAULT_CLEANUP_INTERVAL_MS,
        retention: timedelta = TASK_RETENTION,
        scheduler: Scheduler | None = None,
    ) -> None:
        """Initialize an empty registry; the sweep starts with ``start`` or the first task."""
        self.max_concurrent_tasks = max_concurrent_tasks
        self.default_timeout_ms = default_timeout_ms
        self.cleanup_interval_ms = cleanup_interval_ms
        self.retention = retention
        self._scheduler = scheduler or Scheduler()
        self._tasks: dict[str, TaskInfo] = {}
        self._timeouts: dict[str, TimerHandle] = {}
        self._sweep: TimerHandle | None = None

    def start(self) -> None:
        """Start the periodic cleanup sweep (idempotent)."""
        if self._sweep is None:
            self._sweep = self._scheduler.call_later(self.cleanup_interval_ms / 1000, self._run_sweep)

    def create_task(
        self,
        task_id: str,
        task_type: TaskType,
        message: str = "Task started",
        options: TaskOptions | None = None,
    ) -> TaskInfo:
        """Register a new pending task and arm its timeout.

        Raises:
            RestorepointError: ``TASK_ALREADY_RUNNING`` for a duplicate id,
                ``TASK_LIMIT_EXCEEDED`` when the registry is full.

        """
        if task_id in self._tasks:
            raise RestorepointError(
                ErrorCode.TASK_ALREADY_RUNNING,
                f"Task with ID {task_id} is already running",
                409,
            )
        if self.get_running_task_count() >= self.max_concurrent_tasks:
            raise RestorepointError(
                ErrorCode.TASK_LIMIT_EXCEEDED,
                f"Maximum concurrent task limit ({self.max_concurrent_tasks}) exceeded",
                429,
            )

        opts = options or TaskOptions()
        now = self._scheduler.now()
        task = TaskInfo(
            id=task_id,
            type=TaskType(task_type),
            status=TaskStatus.PENDING,
            created_at=now,
            updated_at=now,
            timeout_ms=self.default_timeout_ms if opts.timeout_ms is None else opts.timeout_ms,
            message=message,
            on_timeout=opts.on_timeout,
            on_complete=opts.on_complete,
            on_error=opts.on_error,
        )
        self._tasks[task_id] = task
        self._timeouts[task_id] = self._scheduler.call_later(
            task.timeout_ms / 1000,
            lambda: self._handle_timeout(task_id),
        )
        self.start()

        logger.info("Created %s task %s (timeout=%dms).", task.type.value, task_id, task.timeout_ms)
        return task

    def update_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        message: str | None = None,
        progress: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> TaskInfo | None:
        """Apply a status change and fire completion or error callbacks.

        Returns:
            The updated task, or None (with a warning) for an unknown id.

        Raises:
            InvalidTaskTransitionError: If the task state machine forbids the change.

        """
        task = self._tasks.get(task_id)
        if task is None:
            logger.warning("Attempted to update non-existent task: %s", task_id)
            return None

        status = TaskStatus(status)
        validate_transition(task_id, task.status, status)
        task.status = status
        task.updated_at = self._scheduler.now()
        if message is not None:
            task.message = message
        if progress is not None:
            task.progress = clamp_progress(progress)
        if details:
            task.details = {**(task.details or {}), **details}

        logger.debug("Updated task %s: %s (progress=%s).", task_id, status.value, task.progress)

        if status.is_terminal:
            self._cancel_timeout(task_id)
        if status is TaskStatus.COMPLETED:
            self._notify(task, "on_complete", task.details)
        elif status is TaskStatus.FAILED:
            self._record_error(task, RestorepointError(ErrorCode.TASK_FAILED, message or "Task failed"))
        elif status is TaskStatus.CANCELLED:
            self._record_error(task, RestorepointError(ErrorCode.TASK_CANCELLED, message or "Task was cancelled"))
        return task

    def get_task(self, task_id: str) -> TaskInfo | None:
        """Return the task with ``task_id`` or None."""
        return self._tasks.get(task_id)

    def get_tasks(self, task_filter: TaskFilter | None = None) -> list[TaskInfo]:
        """Return tracked tasks matching ``task_filter`` in creation order."""
        tasks = list(self._tasks.values())
        if task_filter is None:
            return tasks
        return [task for task in tasks if task_filter.matches(task)]

    def get_running_task_count(self) -> int:
        """Return the number of tracked (not yet purged) tasks."""
        return len(self._tasks)

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a non-terminal task; returns False for unknown or finished tasks."""
        task = self._tasks.get(task_id)
        if task is None or task.is_terminal:
            return False
        self.update_task_status(task_id, TaskStatus.CANCELLED, "Task was cancelled")
        return True

    def delete_task(self, task_id: str) -> bool:
        """Remove a finished task; returns False for unknown ids.

        Raises:
            RestorepointError: ``TASK_ALREADY_RUNNING`` if the task is not terminal.

        """
        task = self._tasks.get(task_id)
        if task is None:
            return False
        if not task.is_terminal:
            raise RestorepointError(
                ErrorCode.TASK_ALREADY_RUNNING,
                "Cannot delete a running task. Cancel it first.",
                409,
            )
        del self._tasks[task_id]
        self._cancel_timeout(task_id)
        logger.debug("Deleted task %s.", task_id)
        return True

    def create_async_result(
        self,
        task_id: str,
        message: str,
        estimated_time: str | None = None,
        data: Any = None,
    ) -> dict[str, Any]:
        """Build the response returned to a caller that started a tracked operation."""
        result: dict[str, Any] = {"success": True, "taskId": task_id, "message": message}
        if estimated_time is not None:
            result["estimatedTime"] = estimated_time
        if data is not None:
            result["data"] = data
        return result

    def cleanup_completed_tasks(self) -> int:
        """Remove terminal tasks not updated within the retention window."""
        cutoff = self._scheduler.now() - self.retention
        stale = [task_id for task_id, task in self._tasks.items() if task.is_terminal and task.updated_at < cutoff]
        for task_id in stale:
            del self._tasks[task_id]
            logger.debug("Cleaned up old task %s.", task_id)
        return len(stale)

    def shutdown(self) -> None:
        """Stop the sweep and cancel every non-terminal task."""
        if self._sweep is not None:
            self._sweep.cancel()
            self._sweep = None
        for task_id, task in list(self._tasks.items()):
            if not task.is_terminal:
                self.cancel_task(task_id)
        for handle in self._timeouts.values():
            handle.cancel()
        self._timeouts.clear()
        logger.info("TaskManager shutdown complete.")

    def _run_sweep(self) -> None:
        self._sweep = None
        removed = self.cleanup_completed_tasks()
        if removed:
            logger.info("Task cleanup removed %d finished task(s).", removed)
        self.start()

    def _handle_timeout(self, task_id: str) -> None:
        self._timeouts.pop(task_id, None)
        task = self._tasks.get(task_id)
        if task is None or task.is_terminal:
            return

        message = f"Task timed out after {task.timeout_ms}ms"
        logger.warning("Task %s timed out after %dms.", task_id, task.timeout_ms)
        self._notify(task, "on_timeout")
        if task.is_terminal:
            # on_timeout itself finished the task
            return
        self.update_task_status(task_id, TaskStatus.TIMEOUT, message)
        self._record_error(task, RestorepointError(ErrorCode.TASK_TIMEOUT, message, 504))

    def _cancel_timeout(self, task_id: str) -> None:
        handle = self._timeouts.pop(task_id, None)
        if handle is not None:
            handle.cancel()

    def _record_error(self, task: TaskInfo, error: RestorepointError) -> None:
        task.error = error
        self._notify(task, "on_error", error)

    def _notify(self, task: TaskInfo, callback_name: str, *args: Any) -> None:
        callback: Callable[..., None] | None = getattr(task, callback_name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Task %s %s callback raised", task.id, callback_name)


__all__ = [
    "DEFAULT_CLEANUP_INTERVAL_MS",
    "DEFAULT_MAX_CONCURRENT_TASKS",
    "DEFAULT_TASK_TIMEOUT_MS",
    "TASK_RETENTION",
    "TaskManager",
]
