# tests/conftest.py

"""
Shared fixtures for the diagram agent test suite.

The real Gemini generator is never used here: `FakeGenerator` returns a canned
reply (or raises) and records the prompts it was given.
"""

import pytest
from fastapi.testclient import TestClient

from diagram_agent.config import Settings
from diagram_agent.tasks.lifecycle import TaskLifecycle
from diagram_agent.tasks.store import InMemoryTaskStore
from diagram_agent.webapp.main import create_app
from diagram_agent.webapp.rpc import JsonRpcDispatcher
from diagram_agent.webapp.worker import GenerationWorker

DIAGRAM_REPLY = (
    "Here is a simple login flow laid out left to right.\n"
    '<mxCell id="2" value="Login" style="rounded=1;" vertex="1" parent="1">\n'
    '  <mxGeometry x="40" y="40" width="120" height="60" as="geometry"/>\n'
    "</mxCell>\n"
    '<mxCell id="3" value="Dashboard" style="rounded=1;" vertex="1" parent="1">\n'
    '  <mxGeometry x="240" y="40" width="120" height="60" as="geometry"/>\n'
    "</mxCell>"
)

PROSE_REPLY = "I am not able to draw that, but here is a description instead."


class FakeGenerator:
    """Stands in for the generation capability."""

    def __init__(self, reply=DIAGRAM_REPLY, error=None, before_reply=None):
        self.reply = reply
        self.error = error
        self.before_reply = before_reply
        self.prompts = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.before_reply is not None:
            self.before_reply()
        if self.error is not None:
            raise self.error
        return self.reply


class ScheduleRecorder:
    """Collects work handed to `schedule(func, *args)` instead of running it."""

    def __init__(self):
        self.calls = []

    def __call__(self, func, *args):
        self.calls.append((func, args))


# --- Fixtures ---

@pytest.fixture
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def lifecycle(store: InMemoryTaskStore) -> TaskLifecycle:
    return TaskLifecycle(store)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def worker(lifecycle: TaskLifecycle, generator: FakeGenerator) -> GenerationWorker:
    return GenerationWorker(lifecycle, generator, max_concurrent_tasks=4)


@pytest.fixture
def dispatcher(lifecycle: TaskLifecycle, worker: GenerationWorker) -> JsonRpcDispatcher:
    return JsonRpcDispatcher(lifecycle, worker)


@pytest.fixture
def schedule() -> ScheduleRecorder:
    return ScheduleRecorder()


@pytest.fixture
def settings() -> Settings:
    return Settings(public_base_url="http://agent.test", max_concurrent_tasks=8)


@pytest.fixture
def client(settings: Settings, generator: FakeGenerator) -> TestClient:
    """An HTTP client for an app whose background tasks finish before each call returns."""
    return TestClient(create_app(settings=settings, generator=generator))
