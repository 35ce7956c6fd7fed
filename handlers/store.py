# =============================================================================
# Task Store - In-memory CRUD collaborator
# =============================================================================
# Thread-safe storage keyed by task id. Lives for the lifetime of the
# process (a warm Lambda container); nothing is persisted.
# =============================================================================

import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from handlers.base import epoch_millis, require_text, validate_enum

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]


@dataclass(frozen=True)
class Task:
    id: str
    name: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    created_at: int = field(default_factory=epoch_millis)
    updated_at: int = field(default_factory=epoch_millis)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_request(cls, data: Dict[str, Any], task_id: str = None) -> "Task":
        """Build a new task from a request payload ({name, description?, status?})."""
        name = require_text(data, "name")
        status = validate_enum(data.get("status"), TaskStatus.values(), "status")
        description = data.get("description")
        return cls(
            id=task_id or str(uuid.uuid4()),
            name=name,
            description=str(description) if description is not None else None,
            status=TaskStatus(status) if status else TaskStatus.TODO,
        )

    def updated_from(self, data: Dict[str, Any]) -> "Task":
        """Copy with the non-null fields of data applied; id and createdAt never change."""
        changes: Dict[str, Any] = {}
        if data.get("name") is not None:
            changes["name"] = require_text(data, "name")
        if data.get("description") is not None:
            changes["description"] = str(data["description"])
        if data.get("status") is not None:
            changes["status"] = TaskStatus(validate_enum(data["status"], TaskStatus.values(), "status"))
        return replace(self, updated_at=epoch_millis(), **changes)


SAMPLE_TASKS = [
    Task(id="task-1", name="Complete documentation",
         description="Write comprehensive API documentation", status=TaskStatus.IN_PROGRESS),
    Task(id="task-2", name="Review code changes",
         description="Review pull request #123", status=TaskStatus.TODO),
    Task(id="task-3", name="Deploy to production",
         description="Deploy v1.0.0 to production environment", status=TaskStatus.COMPLETED),
]


class TaskStore:
    """CRUD store: get, list, save, delete."""

    def __init__(self, seed: bool = True):
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()
        if seed:
            self.reset()

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def list(self) -> List[Task]:
        with self._lock:
            return list(self._tasks.values())

    def exists(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._tasks

    def save(self, task: Task) -> Task:
        with self._lock:
            self._tasks[task.id] = task
        logger.debug(f"Saved task: id={task.id}, name={task.name}")
        return task

    def delete(self, task_id: str) -> Optional[Task]:
        with self._lock:
            removed = self._tasks.pop(task_id, None)
        if removed is not None:
            logger.debug(f"Deleted task: id={task_id}, name={removed.name}")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._tasks.clear()
        logger.warning("All tasks cleared from store")

    def reset(self) -> None:
        """Restore the sample tasks."""
        with self._lock:
            self._tasks = {task.id: task for task in SAMPLE_TASKS}
        logger.info(f"Initialized task store with {len(SAMPLE_TASKS)} sample tasks")

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
