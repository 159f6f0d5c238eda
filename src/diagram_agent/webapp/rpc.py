"""
The A2A Protocol Dispatcher.

This module validates inbound JSON-RPC 2.0 envelopes, routes them to one of the
four A2A task methods, and renders Task entities into the wire format.

The dispatcher is responsible for:
1. Checking the envelope (object, `jsonrpc`, `id`, `method`) in that order.
2. Validating each method's params.
3. Creating tasks and handing them to the generation worker (`tasks/send`).
4. Reading and canceling tasks (`tasks/get`, `tasks/cancel`, `tasks/list`).
5. Turning every failure into a JSON-RPC error object. Nothing raises out of
   `JsonRpcDispatcher.handle`.
"""

import logging
import math
from typing import Any, Callable, Dict, List, Optional, Union

from ..tasks.lifecycle import TaskLifecycle
from ..tasks.models import Task, TaskArtifact
from .worker import GenerationWorker

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

# --- Error Codes ---
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
TASK_NOT_FOUND = -32001
TOO_MANY_TASKS = -32002

# --- Methods ---
METHOD_SEND = "tasks/send"
METHOD_GET = "tasks/get"
METHOD_CANCEL = "tasks/cancel"
METHOD_LIST = "tasks/list"

RequestId = Union[str, int, float]
Schedule = Callable[..., Any]


class JsonRpcError(Exception):
    """A protocol error to be returned to the caller as a JSON-RPC error object."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


# --- Response Helpers ---

def jsonrpc_result(request_id: RequestId, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def jsonrpc_error(request_id: Optional[RequestId], code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": {"code": code, "message": message}}


def _format_artifact(artifact: TaskArtifact) -> Dict[str, Any]:
    exclude = {"description"} if artifact.description is None else None
    return artifact.model_dump(mode="json", by_alias=True, exclude=exclude)


def format_task(task: Task) -> Dict[str, Any]:
    """Converts a Task to the A2A wire format."""
    status: Dict[str, Any] = {"state": task.state.value}
    if task.error:
        status["message"] = {
            "role": "agent",
            "parts": [{"type": "text", "text": task.error}],
        }
    return {
        "id": task.id,
        "sessionId": task.session_id,
        "status": status,
        "artifacts": [_format_artifact(a) for a in task.artifacts],
        "history": [m.model_dump(mode="json", by_alias=True) for m in task.messages],
    }


# --- Validation Helpers ---

def _is_valid_id(value: Any) -> bool:
    # bool is an int subclass but not a JSON-RPC id.
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return False
    # NaN and Infinity cannot be echoed back as JSON.
    return not isinstance(value, float) or math.isfinite(value)


def validate_envelope(payload: Any) -> Dict[str, Any]:
    """
    Checks the request envelope and returns it. Raises `JsonRpcError` with
    INVALID_REQUEST on the first problem found.
    """
    if not isinstance(payload, dict):
        raise JsonRpcError(INVALID_REQUEST, "Request must be an object")
    if payload.get("jsonrpc") != JSONRPC_VERSION:
        raise JsonRpcError(INVALID_REQUEST, "jsonrpc must be '2.0'")
    if not _is_valid_id(payload.get("id")):
        raise JsonRpcError(INVALID_REQUEST, "id must be a string or number")
    if not isinstance(payload.get("method"), str):
        raise JsonRpcError(INVALID_REQUEST, "method must be a string")
    return payload


def _require_task_id(params: Dict[str, Any]) -> str:
    task_id = params.get("id")
    if not isinstance(task_id, str) or not task_id:
        raise JsonRpcError(INVALID_PARAMS, "Invalid params: task id is required")
    return task_id


def _optional_session_id(params: Dict[str, Any]) -> Optional[str]:
    session_id = params.get("sessionId")
    if session_id is not None and not isinstance(session_id, str):
        raise JsonRpcError(INVALID_PARAMS, "Invalid params: sessionId must be a string")
    return session_id or None


def _extract_user_text(params: Dict[str, Any]) -> str:
    message = params.get("message")
    parts = message.get("parts") if isinstance(message, dict) else None
    if not isinstance(parts, list) or not parts:
        raise JsonRpcError(INVALID_PARAMS, "Invalid params: message with parts is required")

    for part in parts:
        if isinstance(part, dict) and part.get("type") == "text":
            text = part.get("text")
            if isinstance(text, str) and text:
                return text
    raise JsonRpcError(INVALID_PARAMS, "Invalid params: text message is required")


# --- Dispatcher ---

class JsonRpcDispatcher:
    """Routes validated A2A requests to the task lifecycle and the worker."""

    def __init__(self, lifecycle: TaskLifecycle, worker: GenerationWorker):
        self.lifecycle = lifecycle
        self.worker = worker
        self._handlers: Dict[str, Callable[[Dict[str, Any], Schedule], Any]] = {
            METHOD_SEND: self._tasks_send,
            METHOD_GET: self._tasks_get,
            METHOD_CANCEL: self._tasks_cancel,
            METHOD_LIST: self._tasks_list,
        }

    @property
    def methods(self) -> List[str]:
        return list(self._handlers)

    def handle(self, payload: Any, schedule: Schedule) -> Dict[str, Any]:
        """
        Processes one JSON-RPC request and returns the response object.

        `schedule(func, *args)` launches detached work, e.g.
        `BackgroundTasks.add_task`.
        """
        request_id: Optional[RequestId] = None
        try:
            try:
                request = validate_envelope(payload)
            except JsonRpcError as e:
                logger.info("Invalid A2A request: %s", e.message)
                return jsonrpc_error(None, e.code, e.message)

            request_id = request["id"]
            method = request["method"]
            logger.info("A2A method: %s", method)

            handler = self._handlers.get(method)
            if handler is None:
                return jsonrpc_error(request_id, METHOD_NOT_FOUND, "Method not found")

            params = request.get("params")
            if params is None:
                params = {}
            elif not isinstance(params, dict):
                return jsonrpc_error(request_id, INVALID_PARAMS, "Invalid params: params must be an object")

            return jsonrpc_result(request_id, handler(params, schedule))

        except JsonRpcError as e:
            return jsonrpc_error(request_id, e.code, e.message)
        except Exception as e:
            logger.exception("A2A dispatch error")
            return jsonrpc_error(request_id, INTERNAL_ERROR, str(e) or "Internal error")

    # --- Method Handlers ---

    def _tasks_send(self, params: Dict[str, Any], schedule: Schedule) -> Dict[str, Any]:
        user_text = _extract_user_text(params)
        session_id = _optional_session_id(params)

        if not self.worker.reserve():
            raise JsonRpcError(TOO_MANY_TASKS, "Too many tasks in progress")
        try:
            task = self.lifecycle.create(user_text, session_id)
            schedule(self.worker.run, task.id, user_text)
        except Exception:
            self.worker.release()
            raise

        return format_task(task)

    def _tasks_get(self, params: Dict[str, Any], schedule: Schedule) -> Dict[str, Any]:
        task = self.lifecycle.get(_require_task_id(params))
        if task is None:
            raise JsonRpcError(TASK_NOT_FOUND, "Task not found")
        return format_task(task)

    def _tasks_cancel(self, params: Dict[str, Any], schedule: Schedule) -> Dict[str, Any]:
        task = self.lifecycle.cancel(_require_task_id(params))
        if task is None:
            raise JsonRpcError(TASK_NOT_FOUND, "Task not found")
        return format_task(task)

    def _tasks_list(self, params: Dict[str, Any], schedule: Schedule) -> List[Dict[str, Any]]:
        tasks = self.lifecycle.list(_optional_session_id(params))
        return [format_task(t) for t in tasks]
