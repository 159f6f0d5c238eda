"""
The Command-Line Interface.

This module is the user-facing entry point for running and poking at the A2A
diagram agent. It uses Typer for the commands and Rich for the output.

Commands:
1. `serve`: Runs the A2A HTTP endpoint with uvicorn.
2. `card`: Prints the capability discovery document.
3. `generate`: Runs a single task in-process, without HTTP, and prints the
   final task as it would be returned by `tasks/get`.
"""

import asyncio
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel
from typing_extensions import Annotated

# --- Local Imports ---
from ..agent.generator import GeminiGenerator
from ..config import Settings, configure_logging
from ..tasks.lifecycle import TaskLifecycle
from ..tasks.models import TaskState
from ..tasks.store import InMemoryTaskStore
from ..webapp.agent_card import build_agent_card
from ..webapp.rpc import format_task
from ..webapp.worker import GenerationWorker

# --- CLI Application Initialization ---
app = typer.Typer(
    name="diagram-agent",
    help="Diagram Agent: an A2A endpoint that turns text into draw.io diagrams.",
    add_completion=False,
    rich_markup_mode="markdown"
)

console = Console()


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Interface to bind.")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to listen on.")] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level, e.g. INFO or DEBUG.")] = None,
):
    """
    Starts the A2A JSON-RPC server.
    """
    settings = Settings.from_env()
    level = log_level or settings.log_level
    configure_logging(level)

    bind_host = host or settings.host
    bind_port = port or settings.port
    console.print(Panel(f"[bold green]🚀 Serving A2A endpoint on http://{bind_host}:{bind_port}/api/a2a[/bold green]"))
    uvicorn.run(
        "diagram_agent.webapp.main:app",
        host=bind_host,
        port=bind_port,
        log_level=level.lower(),
    )


@app.command()
def card():
    """
    Prints the agent's capability discovery document.
    """
    console.print_json(data=build_agent_card(Settings.from_env()))


@app.command()
def generate(
    prompt: Annotated[str, typer.Argument(help="Natural-language description of the diagram.")],
    session_id: Annotated[Optional[str], typer.Option("--session-id", "-s", help="Session to group the task under.")] = None,
):
    """
    Runs one diagram-generation task locally and prints the resulting task.
    """
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    lifecycle = TaskLifecycle(InMemoryTaskStore())
    worker = GenerationWorker(lifecycle, GeminiGenerator.from_settings(settings))

    task = lifecycle.create(prompt, session_id)
    console.print(f"  - Created task [cyan]{task.id}[/cyan] in session [cyan]{task.session_id}[/cyan]")

    worker.reserve()
    with console.status("Generating diagram..."):
        asyncio.run(worker.run(task.id, prompt))

    final_task = lifecycle.get(task.id)
    console.print_json(data=format_task(final_task))

    if final_task.state != TaskState.COMPLETED:
        console.print(f"[bold red]Error:[/bold red] Task ended as '{final_task.state.value}'.")
        raise typer.Exit(code=1)
    console.print(Panel("[bold green]✅ Diagram generated.[/bold green]"))


# --- Main Execution Guard ---
if __name__ == "__main__":
    app()
