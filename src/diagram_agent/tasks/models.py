"""
The Task Data Models.

This module defines the Pydantic models that describe an A2A task and the
conversation it accumulates. These are the only structures the Task Store keeps,
and the protocol layer renders them straight to the JSON-RPC wire format.

The models are:
- `TaskState`: The six lifecycle states of a task.
- `TextPart` / `DataPart`: The two kinds of content a message or artifact can
                           carry, discriminated on their `type` field.
- `TaskMessage`: One turn in the exchange, from the user or the agent.
- `TaskArtifact`: A named result object attached by the generation worker.
- `Task`: The unit of work, holding its state, history and artifacts.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Annotated


def utc_now() -> datetime:
    """Returns the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_task_id() -> str:
    return f"task-{uuid.uuid4().hex}"


def generate_session_id() -> str:
    return f"session-{uuid.uuid4().hex}"


class TaskState(str, Enum):
    """The lifecycle states of a task, valued as they appear on the wire."""
    SUBMITTED = "submitted"
    WORKING = "working"
    INPUT_REQUIRED = "input-required"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELED})


# --- Content Parts ---

class TextPart(BaseModel):
    """A plain-text content unit."""
    type: Literal["text"] = "text"
    text: str


class DataPart(BaseModel):
    """An opaque data payload tagged with its media type."""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["data"] = "data"
    data: Any
    mime_type: str = Field(alias="mimeType")


Part = Annotated[Union[TextPart, DataPart], Field(discriminator="type")]


# --- Messages, Artifacts and Tasks ---

class TaskMessage(BaseModel):
    """One turn in the exchange. Must carry at least one part."""
    role: Literal["user", "agent"]
    parts: List[Part] = Field(min_length=1)

    @classmethod
    def from_text(cls, role: Literal["user", "agent"], text: str) -> "TaskMessage":
        return cls(role=role, parts=[TextPart(text=text)])


class TaskArtifact(BaseModel):
    """A named result object. Never modified once attached to a task."""
    name: str
    description: Optional[str] = None
    parts: List[Part] = Field(min_length=1)


class Task(BaseModel):
    """Represents the complete state of one diagram-generation request."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_task_id)
    session_id: str = Field(default_factory=generate_session_id, alias="sessionId")
    state: TaskState = TaskState.SUBMITTED
    messages: List[TaskMessage] = Field(default_factory=list)
    artifacts: List[TaskArtifact] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal
