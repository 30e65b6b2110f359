"""Background execution of tracked jobs.

``TaskRunner`` couples a coroutine to a ``TaskManager`` record: the record is
created up front, the coroutine runs on the event loop, and its outcome is
written back as ``completed`` or ``failed``. Outcomes that arrive after the
task was cancelled or timed out are dropped.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import RestorepointError
from .models import TaskInfo, TaskOptions, TaskStatus, TaskType
from .task_manager import TaskManager

logger = logging.getLogger("restorepoint_mcp.task_runner")

type Job = Callable[[], Awaitable[Any]]


class TaskRunner:
    """Run jobs in the background and record their outcome on a TaskManager."""

    def __init__(self, task_manager: TaskManager) -> None:
        """Initialize the runner for ``task_manager``."""
        self._task_manager = task_manager
        self._jobs: dict[str, asyncio.Task[None]] = {}

    @property
    def active_jobs(self) -> int:
        """Return the number of jobs still executing."""
        return len(self._jobs)

    def start(
        self,
        task_id: str,
        task_type: TaskType,
        message: str,
        job: Job,
        *,
        timeout_ms: int | None = None,
    ) -> TaskInfo:
        """Register ``task_id`` and run ``job`` in the background.

        Raises:
            RestorepointError: If the task manager refuses the task (duplicate or limit).

        """
        task = self._task_manager.create_task(task_id, task_type, message, TaskOptions(timeout_ms=timeout_ms))
        self._task_manager.update_task_status(task_id, TaskStatus.RUNNING, message)
        background = asyncio.get_running_loop().create_task(self._run(task_id, job), name=f"task-{task_id}")
        self._jobs[task_id] = background
        background.add_done_callback(lambda _: self._jobs.pop(task_id, None))
        return task

    async def aclose(self) -> None:
        """Cancel every job that is still executing and wait for them to unwind."""
        jobs = list(self._jobs.values())
        for job in jobs:
            job.cancel()
        if jobs:
            await asyncio.gather(*jobs, return_exceptions=True)
        self._jobs.clear()

    async def _run(self, task_id: str, job: Job) -> None:
        try:
            result = await job()
        except asyncio.CancelledError:
            self._finish(task_id, TaskStatus.CANCELLED, "Task was cancelled")
            raise
        except RestorepointError as exc:
            self._finish(task_id, TaskStatus.FAILED, exc.message, {"code": exc.code.value, **(exc.details or {})})
        except Exception as exc:
            logger.exception("Background job for task %s raised", task_id)
            self._finish(task_id, TaskStatus.FAILED, str(exc) or type(exc).__name__)
        else:
            details = result if isinstance(result, dict) else {"result": result}
            self._finish(task_id, TaskStatus.COMPLETED, "Task completed successfully", details, progress=100)

    def _finish(
        self,
        task_id: str,
        status: TaskStatus,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        progress: int | None = None,
    ) -> None:
        task = self._task_manager.get_task(task_id)
        if task is None or task.is_terminal:
            logger.info("Dropping late %s outcome for task %s.", status.value, task_id)
            return
        self._task_manager.update_task_status(task_id, status, message, progress, details)


__all__ = ["Job", "TaskRunner"]
