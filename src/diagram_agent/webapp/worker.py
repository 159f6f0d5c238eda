"""
The Generation Worker: The Engine Room of the A2A Service.

This module turns a submitted task into a completed or failed one. It is
scheduled in the background by `tasks/send` so that it never blocks the
request that created the task.

`GenerationWorker.run` drives a single task:
1. Moves the task to `working`.
2. Builds one prompt from the system instruction and the user's request.
3. Calls the generation capability exactly once.
4. Extracts any embedded draw.io `mxCell` markup from the reply.
5. Records the raw reply as an agent message, and the markup (if any) as the
   `diagram.xml` artifact.
6. Moves the task to `completed`, or to `failed` if anything above raised.

The worker also does admission control: `reserve()` must claim a slot before a
task is launched, and `run` gives it back when it finishes.
"""

import logging
import re
import threading

from ..agent.generator import DiagramGenerator, GenerationError
from ..agent.prompts import build_diagram_prompt
from ..tasks.lifecycle import TaskLifecycle, TaskNotFoundError, TaskStateError
from ..tasks.models import DataPart, TaskArtifact, TaskMessage

logger = logging.getLogger(__name__)

# --- Constants ---
DIAGRAM_ARTIFACT_NAME = "diagram.xml"
DIAGRAM_ARTIFACT_DESCRIPTION = "Generated draw.io diagram in XML format"
DIAGRAM_MIME_TYPE = "application/xml"

_MXCELL_PATTERN = re.compile(r"<mxCell[\s\S]*</mxCell>")


def extract_diagram_xml(text: str) -> str:
    """Returns the mxCell markup found in `text`, or an empty string."""
    return "\n".join(_MXCELL_PATTERN.findall(text))


def _describe(error: BaseException) -> str:
    return str(error) or "Unknown error"


class GenerationWorker:
    """Runs generation tasks and bounds how many may run at once."""

    def __init__(
        self,
        lifecycle: TaskLifecycle,
        generator: DiagramGenerator,
        max_concurrent_tasks: int = 0,
    ):
        self.lifecycle = lifecycle
        self.generator = generator
        self.max_concurrent_tasks = max_concurrent_tasks
        self._active = 0
        self._slots_lock = threading.Lock()

    # --- Admission Control ---

    @property
    def active_count(self) -> int:
        with self._slots_lock:
            return self._active

    def reserve(self) -> bool:
        """Claims a worker slot. Returns False when the limit is reached."""
        with self._slots_lock:
            if self.max_concurrent_tasks and self._active >= self.max_concurrent_tasks:
                return False
            self._active += 1
            return True

    def release(self) -> None:
        with self._slots_lock:
            if self._active > 0:
                self._active -= 1

    # --- Task Execution ---

    async def run(self, task_id: str, user_text: str) -> None:
        """Drives one task to a terminal state. Releases its slot when done."""
        try:
            await self._process(task_id, user_text)
        finally:
            self.release()

    async def _process(self, task_id: str, user_text: str) -> None:
        try:
            self.lifecycle.start(task_id)
        except (TaskNotFoundError, TaskStateError) as e:
            logger.warning("Task %s not started: %s", task_id, e)
            return

        logger.info("Processing task %s", task_id)
        try:
            prompt = build_diagram_prompt(user_text)
            full_text = await self.generator.generate(prompt)
            if not isinstance(full_text, str):
                raise GenerationError(f"Generator returned {type(full_text).__name__}, expected text.")
            logger.info("Task %s: model response length %d", task_id, len(full_text))

            diagram_xml = extract_diagram_xml(full_text)

            self.lifecycle.add_message(task_id, TaskMessage.from_text("agent", full_text))
            if diagram_xml:
                self.lifecycle.add_artifact(task_id, TaskArtifact(
                    name=DIAGRAM_ARTIFACT_NAME,
                    description=DIAGRAM_ARTIFACT_DESCRIPTION,
                    parts=[DataPart(data=diagram_xml, mime_type=DIAGRAM_MIME_TYPE)],
                ))

            self.lifecycle.complete(task_id)
            logger.info("Task %s completed", task_id)

        except (TaskNotFoundError, TaskStateError) as e:
            # Canceled or purged while the model was running.
            logger.info("Discarding result for task %s: %s", task_id, e)

        except Exception as e:
            logger.exception("Task %s failed", task_id)
            self._fail(task_id, _describe(e))

    def _fail(self, task_id: str, error: str) -> None:
        try:
            self.lifecycle.fail(task_id, error)
        except (TaskNotFoundError, TaskStateError) as e:
            logger.info("Could not mark task %s as failed: %s", task_id, e)
