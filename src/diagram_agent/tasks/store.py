"""
The Task Store: canonical storage for every Task entity.

`TaskStore` is the abstract interface the rest of the system programs against,
so a durable or shared backend can replace the in-memory one without touching
the protocol layer or the worker. `InMemoryTaskStore` keeps tasks in an
insertion-ordered dictionary guarded by a re-entrant lock.

Every operation is total: a missing task is reported as `None`, never raised.
Mutators here are raw setters with no knowledge of the state machine; the
`TaskLifecycle` controller is their only intended caller.

Reads hand out deep copies, so callers never hold a live reference into the
store's state.
"""

import abc
import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .models import Task, TaskArtifact, TaskMessage, TaskState, utc_now


class TaskStore(abc.ABC):
    """The operations any task backend must provide."""

    @abc.abstractmethod
    def create(self, user_text: str, session_id: Optional[str] = None) -> Task:
        """Stores a new `submitted` task seeded with one user message."""

    @abc.abstractmethod
    def get(self, task_id: str) -> Optional[Task]:
        """Returns a snapshot of the task, or None."""

    @abc.abstractmethod
    def update_state(self, task_id: str, new_state: TaskState, error: Optional[str] = None) -> Optional[Task]:
        """Overwrites the task's state (and error, when given)."""

    @abc.abstractmethod
    def append_message(self, task_id: str, message: TaskMessage) -> Optional[Task]:
        """Appends a message to the task's history."""

    @abc.abstractmethod
    def append_artifact(self, task_id: str, artifact: TaskArtifact) -> Optional[Task]:
        """Appends an artifact to the task."""

    @abc.abstractmethod
    def list(self, session_id: Optional[str] = None) -> List[Task]:
        """Returns every task, or only those of one session, in insertion order."""

    @abc.abstractmethod
    def purge_older_than(self, max_age: timedelta) -> int:
        """Removes tasks created before `now - max_age`. Returns how many were removed."""


class InMemoryTaskStore(TaskStore):
    """A process-local TaskStore. Contents are lost when the process exits."""

    def __init__(self):
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    @staticmethod
    def _touch(task: Task) -> None:
        # updatedAt never moves backwards, even if the wall clock does.
        task.updated_at = max(utc_now(), task.updated_at)

    def create(self, user_text: str, session_id: Optional[str] = None) -> Task:
        now = utc_now()
        fields = {
            "state": TaskState.SUBMITTED,
            "messages": [TaskMessage.from_text("user", user_text)],
            "created_at": now,
            "updated_at": now,
        }
        if session_id:
            fields["session_id"] = session_id
        task = Task(**fields)

        with self._lock:
            # uuid4 collisions are not expected, but ids must stay unique.
            while task.id in self._tasks:
                task = task.model_copy(update={"id": Task().id})
            self._tasks[task.id] = task
            return task.model_copy(deep=True)

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy(deep=True) if task else None

    def update_state(self, task_id: str, new_state: TaskState, error: Optional[str] = None) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            task.state = new_state
            if error:
                task.error = error
            self._touch(task)
            return task.model_copy(deep=True)

    def append_message(self, task_id: str, message: TaskMessage) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            task.messages.append(message.model_copy(deep=True))
            self._touch(task)
            return task.model_copy(deep=True)

    def append_artifact(self, task_id: str, artifact: TaskArtifact) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            task.artifacts.append(artifact.model_copy(deep=True))
            self._touch(task)
            return task.model_copy(deep=True)

    def list(self, session_id: Optional[str] = None) -> List[Task]:
        with self._lock:
            tasks = list(self._tasks.values())
            if session_id:
                tasks = [t for t in tasks if t.session_id == session_id]
            return [t.model_copy(deep=True) for t in tasks]

    def purge_older_than(self, max_age: timedelta) -> int:
        cutoff: datetime = utc_now() - max_age
        with self._lock:
            expired = [task_id for task_id, task in self._tasks.items() if task.created_at < cutoff]
            for task_id in expired:
                del self._tasks[task_id]
            return len(expired)
