"""
The FastAPI Web Server: The A2A Endpoint.

This module exposes the agent over HTTP. It uses FastAPI to accept JSON-RPC
requests and to run generation work in the background.

It is responsible for:
1. Wiring the Task Store, Lifecycle Controller, Generation Worker and Protocol
   Dispatcher together (`create_app`).
2. Accepting JSON-RPC 2.0 requests on `POST /api/a2a`.
3. Serving the capability discovery document on `GET /api/a2a` and on the
   conventional `/.well-known/agent.json` path.
4. Optionally purging old tasks on an interval during the app's lifespan.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse

# --- Local Imports ---
from ..agent.generator import DiagramGenerator, GeminiGenerator
from ..config import Settings
from ..tasks.lifecycle import TaskLifecycle
from ..tasks.store import InMemoryTaskStore, TaskStore
from .agent_card import AGENT_VERSION, build_agent_card
from .rpc import PARSE_ERROR, JsonRpcDispatcher, jsonrpc_error
from .worker import GenerationWorker

logger = logging.getLogger(__name__)


async def purge_loop(lifecycle: TaskLifecycle, interval_seconds: int, max_age_seconds: int) -> None:
    """Periodically removes tasks older than `max_age_seconds`."""
    max_age = timedelta(seconds=max_age_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        removed = lifecycle.purge_older_than(max_age)
        if removed:
            logger.info("Purged %d expired task(s).", removed)


def _reject_constant(name: str):
    # json accepts NaN and Infinity, which are not valid JSON.
    raise ValueError(f"Invalid JSON constant: {name}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Starting A2A diagram agent...")

    purge_task = None
    if settings.purge_interval_seconds > 0:
        purge_task = asyncio.create_task(purge_loop(
            app.state.lifecycle,
            settings.purge_interval_seconds,
            settings.task_max_age_seconds,
        ))
        logger.info("Task purge scheduled every %ds.", settings.purge_interval_seconds)

    yield

    logger.info("Shutting down A2A diagram agent...")
    if purge_task is not None:
        purge_task.cancel()
        try:
            await purge_task
        except asyncio.CancelledError:
            pass


def create_app(
    settings: Optional[Settings] = None,
    generator: Optional[DiagramGenerator] = None,
    store: Optional[TaskStore] = None,
) -> FastAPI:
    """Builds the FastAPI application and its task-processing components."""
    settings = settings or Settings.from_env()
    generator = generator or GeminiGenerator.from_settings(settings)

    lifecycle = TaskLifecycle(store if store is not None else InMemoryTaskStore())
    worker = GenerationWorker(lifecycle, generator, settings.max_concurrent_tasks)
    dispatcher = JsonRpcDispatcher(lifecycle, worker)

    app = FastAPI(
        title="Diagram Agent",
        description="A2A task endpoint for AI draw.io diagram generation",
        version=AGENT_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.lifecycle = lifecycle
    app.state.worker = worker
    app.state.dispatcher = dispatcher

    # --- A2A Endpoints ---

    @app.post("/api/a2a", response_class=JSONResponse)
    async def a2a_rpc(request: Request, background_tasks: BackgroundTasks):
        """Handles one JSON-RPC 2.0 request. Errors are reported in the body."""
        try:
            body = json.loads(await request.body(), parse_constant=_reject_constant)
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as e:
            logger.info("Unparseable A2A request body: %s", e)
            return jsonrpc_error(None, PARSE_ERROR, "Parse error")

        return dispatcher.handle(body, background_tasks.add_task)

    @app.get("/api/a2a", response_class=JSONResponse)
    async def a2a_agent_card():
        """Serves the capability discovery document."""
        return build_agent_card(settings)

    @app.get("/.well-known/agent.json", response_class=JSONResponse)
    async def well_known_agent_card():
        return build_agent_card(settings)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "diagram-agent", "version": AGENT_VERSION}

    return app


app = create_app()
