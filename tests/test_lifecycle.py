# tests/test_lifecycle.py

"""
Unit Tests for the Task Lifecycle Controller.

These verify the transition table, the frozen nature of terminal tasks and the
distinction between "not found" and "no-op on a terminal task" for cancel.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from diagram_agent.tasks.lifecycle import (
    ALLOWED_TRANSITIONS,
    InvalidTransitionError,
    TaskLifecycle,
    TaskNotFoundError,
    TaskTerminalError,
    can_transition,
)
from diagram_agent.tasks.models import TERMINAL_STATES, TaskArtifact, TaskMessage, TaskState, TextPart


def test_terminal_states_have_no_outgoing_transitions():
    for state in TERMINAL_STATES:
        assert ALLOWED_TRANSITIONS[state] == frozenset()


@pytest.mark.parametrize("current, target, allowed", [
    (TaskState.SUBMITTED, TaskState.WORKING, True),
    (TaskState.SUBMITTED, TaskState.CANCELED, True),
    (TaskState.SUBMITTED, TaskState.COMPLETED, False),
    (TaskState.WORKING, TaskState.INPUT_REQUIRED, True),
    (TaskState.WORKING, TaskState.FAILED, True),
    (TaskState.INPUT_REQUIRED, TaskState.WORKING, True),
    (TaskState.INPUT_REQUIRED, TaskState.COMPLETED, False),
    (TaskState.COMPLETED, TaskState.CANCELED, False),
])
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_happy_path_transitions(lifecycle: TaskLifecycle):
    task = lifecycle.create("x")
    working = lifecycle.start(task.id)
    done = lifecycle.complete(task.id)

    assert working.state == TaskState.WORKING
    assert done.state == TaskState.COMPLETED
    assert done.updated_at >= working.updated_at >= task.created_at


def test_fail_records_error(lifecycle: TaskLifecycle):
    task = lifecycle.create("x")
    lifecycle.start(task.id)
    failed = lifecycle.fail(task.id, "model exploded")

    assert failed.state == TaskState.FAILED
    assert failed.error == "model exploded"


def test_illegal_transition_raises_and_leaves_task_unchanged(lifecycle: TaskLifecycle):
    task = lifecycle.create("x")
    with pytest.raises(InvalidTransitionError, match="cannot move from 'submitted' to 'completed'"):
        lifecycle.complete(task.id)
    assert lifecycle.get(task.id).state == TaskState.SUBMITTED


def test_transition_on_missing_task_raises(lifecycle: TaskLifecycle):
    with pytest.raises(TaskNotFoundError):
        lifecycle.start("missing")


def test_cancel_missing_task_returns_none(lifecycle: TaskLifecycle):
    assert lifecycle.cancel("missing") is None


def test_cancel_active_task(lifecycle: TaskLifecycle):
    task = lifecycle.create("x")
    lifecycle.start(task.id)
    canceled = lifecycle.cancel(task.id)
    assert canceled.state == TaskState.CANCELED


def test_cancel_terminal_task_is_a_no_op(lifecycle: TaskLifecycle):
    task = lifecycle.create("x")
    lifecycle.start(task.id)
    completed = lifecycle.complete(task.id)

    result = lifecycle.cancel(task.id)

    assert result.state == TaskState.COMPLETED
    assert result.updated_at == completed.updated_at


def test_terminal_task_rejects_appends(lifecycle: TaskLifecycle):
    task = lifecycle.create("x")
    lifecycle.cancel(task.id)

    with pytest.raises(TaskTerminalError):
        lifecycle.add_message(task.id, TaskMessage.from_text("agent", "late"))
    with pytest.raises(TaskTerminalError):
        lifecycle.add_artifact(task.id, TaskArtifact(name="late", parts=[TextPart(text="x")]))
    with pytest.raises(InvalidTransitionError):
        lifecycle.complete(task.id)

    assert lifecycle.get(task.id).messages[-1].role == "user"


def test_append_to_missing_task_raises(lifecycle: TaskLifecycle):
    with pytest.raises(TaskNotFoundError):
        lifecycle.add_message("missing", TaskMessage.from_text("agent", "x"))


def test_cancel_racing_complete_has_one_winner(lifecycle: TaskLifecycle):
    for _ in range(50):
        task = lifecycle.create("x")
        lifecycle.start(task.id)
        barrier = threading.Barrier(2)

        def do_cancel():
            barrier.wait()
            return lifecycle.cancel(task.id)

        def do_complete():
            barrier.wait()
            try:
                return lifecycle.complete(task.id)
            except InvalidTransitionError:
                return None

        with ThreadPoolExecutor(max_workers=2) as pool:
            cancel_future = pool.submit(do_cancel)
            complete_future = pool.submit(do_complete)
            canceled, completed = cancel_future.result(), complete_future.result()

        final = lifecycle.get(task.id)
        if final.state == TaskState.COMPLETED:
            # complete won, cancel was a no-op on the terminal task
            assert completed is not None
            assert canceled.state == TaskState.COMPLETED
        else:
            assert final.state == TaskState.CANCELED
            assert canceled.state == TaskState.CANCELED
            assert completed is None


def test_concurrent_starts_only_one_succeeds(lifecycle: TaskLifecycle):
    task = lifecycle.create("x")
    barrier = threading.Barrier(8)

    def do_start():
        barrier.wait()
        try:
            lifecycle.start(task.id)
            return True
        except InvalidTransitionError:
            return False

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = [f.result() for f in [pool.submit(do_start) for _ in range(8)]]

    assert results.count(True) == 1
    assert lifecycle.get(task.id).state == TaskState.WORKING
