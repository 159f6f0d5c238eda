"""
The Task Lifecycle Controller.

`TaskLifecycle` sits on top of a `TaskStore` and is the only code allowed to call
the store's raw mutators. It enforces the task state machine:

    submitted       -> working, canceled
    working         -> input-required, completed, failed, canceled
    input-required  -> working, canceled
    completed / failed / canceled -> (terminal, nothing)

Illegal moves raise `InvalidTransitionError`. Terminal tasks are frozen: appends
raise `TaskTerminalError`, and a cancel request against them is a silent no-op.
Each check-and-mutate sequence runs under the controller's lock, so two callers
can never both act on the same observed state.
"""

import logging
import threading
from datetime import timedelta
from typing import Dict, FrozenSet, List, Optional

from .models import Task, TaskArtifact, TaskMessage, TaskState
from .store import TaskStore

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[TaskState, FrozenSet[TaskState]] = {
    TaskState.SUBMITTED: frozenset({TaskState.WORKING, TaskState.CANCELED}),
    TaskState.WORKING: frozenset({
        TaskState.INPUT_REQUIRED,
        TaskState.COMPLETED,
        TaskState.FAILED,
        TaskState.CANCELED,
    }),
    TaskState.INPUT_REQUIRED: frozenset({TaskState.WORKING, TaskState.CANCELED}),
    TaskState.COMPLETED: frozenset(),
    TaskState.FAILED: frozenset(),
    TaskState.CANCELED: frozenset(),
}


# --- Errors ---

class TaskError(Exception):
    """Base class for lifecycle errors."""


class TaskNotFoundError(TaskError):
    def __init__(self, task_id: str):
        super().__init__(f"Task '{task_id}' not found.")
        self.task_id = task_id


class TaskStateError(TaskError):
    """The task's current state does not permit the requested operation."""


class InvalidTransitionError(TaskStateError):
    def __init__(self, task_id: str, current: TaskState, target: TaskState):
        super().__init__(f"Task '{task_id}' cannot move from '{current.value}' to '{target.value}'.")
        self.task_id = task_id
        self.current = current
        self.target = target


class TaskTerminalError(TaskStateError):
    def __init__(self, task_id: str, state: TaskState):
        super().__init__(f"Task '{task_id}' is already '{state.value}' and can no longer change.")
        self.task_id = task_id
        self.state = state


def can_transition(current: TaskState, target: TaskState) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class TaskLifecycle:
    """Mediates every task mutation through the state machine."""

    def __init__(self, store: TaskStore):
        self.store = store
        self._lock = threading.RLock()

    # --- Reads and creation (pass-through) ---

    def create(self, user_text: str, session_id: Optional[str] = None) -> Task:
        return self.store.create(user_text, session_id)

    def get(self, task_id: str) -> Optional[Task]:
        return self.store.get(task_id)

    def list(self, session_id: Optional[str] = None) -> List[Task]:
        return self.store.list(session_id)

    def purge_older_than(self, max_age: timedelta) -> int:
        return self.store.purge_older_than(max_age)

    # --- State transitions ---

    def _require(self, task_id: str) -> Task:
        task = self.store.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def transition(self, task_id: str, new_state: TaskState, error: Optional[str] = None) -> Task:
        """Moves a task to `new_state`, or raises if the state machine forbids it."""
        with self._lock:
            task = self._require(task_id)
            if not can_transition(task.state, new_state):
                raise InvalidTransitionError(task_id, task.state, new_state)
            updated = self.store.update_state(task_id, new_state, error)
            if updated is None:
                raise TaskNotFoundError(task_id)
            logger.debug("Task %s: %s -> %s", task_id, task.state.value, new_state.value)
            return updated

    def start(self, task_id: str) -> Task:
        return self.transition(task_id, TaskState.WORKING)

    def complete(self, task_id: str) -> Task:
        return self.transition(task_id, TaskState.COMPLETED)

    def fail(self, task_id: str, error: str) -> Task:
        return self.transition(task_id, TaskState.FAILED, error)

    def cancel(self, task_id: str) -> Optional[Task]:
        """
        Requests cancellation. Returns None if the task does not exist, and the
        task unchanged if it has already reached a terminal state.
        """
        with self._lock:
            task = self.store.get(task_id)
            if task is None:
                return None
            if task.is_terminal:
                logger.info("Cancel ignored for task %s: already %s.", task_id, task.state.value)
                return task
            return self.transition(task_id, TaskState.CANCELED)

    # --- Appends ---

    def add_message(self, task_id: str, message: TaskMessage) -> Task:
        with self._lock:
            task = self._require(task_id)
            if task.is_terminal:
                raise TaskTerminalError(task_id, task.state)
            return self.store.append_message(task_id, message)

    def add_artifact(self, task_id: str, artifact: TaskArtifact) -> Task:
        with self._lock:
            task = self._require(task_id)
            if task.is_terminal:
                raise TaskTerminalError(task_id, task.state)
            return self.store.append_artifact(task_id, artifact)
