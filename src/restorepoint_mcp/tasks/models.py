"""Task records and the task status state machine."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..errors import ErrorCode, RestorepointError


class TaskStatus(StrEnum):
    """Lifecycle states of a tracked task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        """Return True for states that allow no further transitions."""
        return self in TERMINAL_STATUSES


class TaskType(StrEnum):
    """Kinds of long-running remote operations."""

    BACKUP = "backup"
    RESTORE = "restore"
    COMMAND = "command"
    CUSTOM = "custom"


TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED, TaskStatus.TIMEOUT}
)

# Repeating a non-terminal status is allowed so progress can be reported.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.PENDING, TaskStatus.RUNNING, *TERMINAL_STATUSES}),
    TaskStatus.RUNNING: frozenset({TaskStatus.RUNNING, *TERMINAL_STATUSES}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
    TaskStatus.TIMEOUT: frozenset(),
}


class InvalidTaskTransitionError(RestorepointError):
    """Raised when a status change would violate the task state machine."""

    def __init__(self, task_id: str, current: TaskStatus, requested: TaskStatus) -> None:
        """Describe the rejected transition."""
        super().__init__(
            ErrorCode.TASK_INVALID_TRANSITION,
            f"Task {task_id} cannot move from '{current}' to '{requested}'",
            409,
            {"taskId": task_id, "from": current.value, "to": requested.value},
        )


def validate_transition(task_id: str, current: TaskStatus, requested: TaskStatus) -> None:
    """Raise ``InvalidTaskTransitionError`` unless ``current -> requested`` is legal."""
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTaskTransitionError(task_id, current, requested)


@dataclass(frozen=True, slots=True)
class TaskOptions:
    """Options accepted by ``TaskManager.create_task``."""

    timeout_ms: int | None = None
    on_timeout: Callable[[], None] | None = None
    on_complete: Callable[[dict[str, Any] | None], None] | None = None
    on_error: Callable[[Exception], None] | None = None


@dataclass(frozen=True, slots=True)
class TaskFilter:
    """Criteria for ``TaskManager.get_tasks``; unset fields match everything."""

    status: TaskStatus | None = None
    type: TaskType | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None

    def matches(self, task: "TaskInfo") -> bool:
        """Return True when ``task`` satisfies every set criterion."""
        if self.status is not None and task.status != self.status:
            return False
        if self.type is not None and task.type != self.type:
            return False
        if self.created_after is not None and task.created_at < self.created_after:
            return False
        return not (self.created_before is not None and task.created_at > self.created_before)


@dataclass(slots=True)
class TaskInfo:
    """Bookkeeping for one tracked operation."""

    id: str
    type: TaskType
    status: TaskStatus
    created_at: datetime
    updated_at: datetime
    timeout_ms: int
    progress: int = 0
    message: str = ""
    details: dict[str, Any] | None = None
    error: Exception | None = None
    on_timeout: Callable[[], None] | None = field(default=None, repr=False)
    on_complete: Callable[[dict[str, Any] | None], None] | None = field(default=None, repr=False)
    on_error: Callable[[Exception], None] | None = field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        """Return True once the task reached a final status."""
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible snapshot for polling callers."""
        snapshot: dict[str, Any] = {
            "taskId": self.id,
            "type": self.type.value,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "timeoutMs": self.timeout_ms,
        }
        if self.details:
            snapshot["details"] = self.details
        if self.error is not None:
            snapshot["error"] = {
                "code": self.error.code.value if isinstance(self.error, RestorepointError) else None,
                "message": str(self.error),
            }
        return snapshot


def clamp_progress(progress: float) -> int:
    """Clamp ``progress`` into the 0..100 range."""
    return int(max(0, min(100, progress)))


__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "InvalidTaskTransitionError",
    "TaskFilter",
    "TaskInfo",
    "TaskOptions",
    "TaskStatus",
    "TaskType",
    "clamp_progress",
    "validate_transition",
]
