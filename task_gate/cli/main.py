"""
SOLE RESPONSIBILITY: Defines the Typer CLI commands (serve, list, show, next, clear, config)
and renders TaskManager results for humans with Rich.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Annotated

import typer
from rich.console import Console
from rich.table import Table

from task_gate.core.identifiers import ordered_subtasks, parse_task_number
from task_gate.core.lifecycle import completion_percentage
from task_gate.core.manager import TaskManager
from task_gate.server.config import get_config


app = typer.Typer(
    name="task-gate",
    help="""
✅ [bold cyan]Task Gate[/bold cyan] - Approval-gated task tracking for AI assistants

[bold blue]Workflow[/bold blue]
  [green]1.[/green] The assistant plans a request into tasks ([cyan]request_planning[/cyan])
  [green]2.[/green] Each task is marked done, then approved by the user
  [green]3.[/green] The request is closed once every task is done and approved

[bold yellow]Quick Start[/bold yellow]
  [cyan]# Run the MCP server over stdio[/cyan]
  $ task-gate serve

  [cyan]# Inspect the task document[/cyan]
  $ task-gate list
  $ task-gate show req-1
""",
    rich_markup_mode="rich",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

# Console for rich output
console = Console()

STATUS_STYLES = {
    "completed": "green",
    "in_progress": "yellow",
    "cancelled": "red",
    "pending": "dim",
}

FileOption = Annotated[
    Optional[Path],
    typer.Option("--file", "-f", help="Task document to use (defaults to configured path)"),
]


def version_callback(value: bool):
    """Version callback function for --version flag."""
    if value:
        from task_gate import __version__

        console.print(f"[bold green]Task Gate[/bold green] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
):
    """
    Approval-gated request, task and subtask tracking.
    """


def get_manager(file: Optional[Path]) -> TaskManager:
    config = get_config()
    return TaskManager(
        file or config.file_path,
        backups_enabled=config.storage.backups_enabled,
        quarantine_corrupt=config.storage.quarantine_corrupt,
    )


def exit_on_error(result: Dict[str, Any]):
    """Print an error envelope and exit non-zero."""
    if result.get("status") == "error":
        console.print(f"[red]❌ {result.get('message')}[/red] [dim]({result.get('code')})[/dim]")
        raise typer.Exit(1)


def task_state(task: Dict[str, Any]) -> str:
    if task.get("approved"):
        return "[green]approved[/green]"
    if task.get("done"):
        return "[yellow]awaiting approval[/yellow]"
    return "[dim]open[/dim]"


@app.command()
def serve(file: FileOption = None):
    """
    Run the MCP server over stdio.
    """
    from task_gate.mcp.server import create_task_server
    from task_gate.server.server_logger import initialize_logging, log_lifecycle

    config = get_config()
    initialize_logging(config.log.debug, config.log.level, Path(config.log.log_dir).expanduser())
    mcp = create_task_server(file_path=file)
    with log_lifecycle("task-gate", file or config.file_path):
        mcp.run()


@app.command("list")
def list_requests(
    file: FileOption = None,
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """
    List all requests with their task counts.
    """
    result = get_manager(file).list_requests()
    exit_on_error(result)

    if json_output:
        typer.echo(json.dumps(result["requests"], indent=2))
        return

    requests = result["requests"]
    if not requests:
        console.print("\n[yellow]📭 No requests found yet![/yellow]\n")
        return

    table = Table(title="Requests")
    table.add_column("ID", style="bold cyan", no_wrap=True)
    table.add_column("Request", style="white")
    table.add_column("Done", style="yellow")
    table.add_column("Approved", style="green")
    table.add_column("State")

    for request in requests:
        table.add_row(
            request["requestId"],
            request["originalRequest"][:60] + ("..." if len(request["originalRequest"]) > 60 else ""),
            f"{request['completedTasks']}/{request['totalTasks']}",
            f"{request['approvedTasks']}/{request['totalTasks']}",
            "[green]completed[/green]" if request["completed"] else "[yellow]open[/yellow]",
        )

    console.print(table)


@app.command()
def show(
    request_id: str = typer.Argument(..., help="Request ID (e.g. req-1)"),
    file: FileOption = None,
):
    """
    Show the tasks and subtasks of one request.
    """
    manager = get_manager(file)
    request = manager.store.find_request(request_id)
    if request is None:
        console.print(f"[red]❌ Request {request_id} not found.[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold blue]{request.request_id}[/bold blue]: {request.original_request}")
    if request.split_details and request.split_details != request.original_request:
        console.print(f"[dim]{request.split_details}[/dim]")

    table = Table()
    table.add_column("Task", style="bold cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Progress", style="yellow")
    table.add_column("State")

    for task in request.tasks:
        number = parse_task_number(task.id)
        label = f"Task {number}" if number is not None else task.id
        progress = f"{completion_percentage(task.subtasks)}%" if task.subtasks else "-"
        table.add_row(label, task.title, progress, task_state({"done": task.done, "approved": task.approved}))
        for position, subtask in enumerate(ordered_subtasks(task.subtasks), start=1):
            style = STATUS_STYLES.get(subtask.status, "white")
            table.add_row(f"  └─ {position}", subtask.content, "", f"[{style}]{subtask.status}[/{style}]")

    console.print(table)
    if request.completed:
        console.print("[green]✓ Request completed[/green]")


@app.command("next")
def next_task(
    request_id: str = typer.Argument(..., help="Request ID (e.g. req-1)"),
    file: FileOption = None,
):
    """
    Show the next task of a request that is not done.
    """
    result = get_manager(file).get_next_task(request_id)
    exit_on_error(result)

    if result["status"] != "next_task":
        console.print(f"[yellow]{result['message'].splitlines()[0]}[/yellow] [dim]({result['status']})[/dim]")
        return

    task = result["task"]
    console.print(f"[bold cyan]{task['id']}[/bold cyan] {task['title']}")
    if task["description"]:
        console.print(f"[dim]{task['description']}[/dim]")


@app.command()
def clear(
    file: FileOption = None,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """
    Remove every request and task from the document. Cannot be undone.
    """
    manager = get_manager(file)
    if not yes:
        typer.confirm(f"Clear all requests from {manager.file_path}?", abort=True)

    result = manager.clear_all_tasks()
    exit_on_error(result)
    console.print(
        f"[green]✓ Removed {result['clearedRequests']} requests and {result['clearedTasks']} tasks[/green]"
    )


@app.command()
def config(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """
    Show the effective configuration.
    """
    settings = get_config()
    if json_output:
        typer.echo(json.dumps(settings.to_dict(), indent=2))
        return

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for section, values in settings.to_dict().items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))
    console.print(table)


def cli_entry():
    """Entry point for the CLI executable."""
    app()


if __name__ == "__main__":
    app()
