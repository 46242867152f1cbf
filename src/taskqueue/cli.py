"""Command-line interface: list, approve and finalize, plan generation, server."""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.text import Text

from . import __version__
from .config import Settings, load_settings
from .constants import DEFAULT_CLI_LOG_LEVEL, DEFAULT_HOST, DEFAULT_PORT, DEFAULT_SERVER_LOG_LEVEL
from .errors import TaskQueueError
from .formatting import (
    format_projects_list,
    format_task_progress_table,
    progress_bar,
    progress_summary,
    projects_table,
    task_detail_table,
    tasks_table,
)
from .planner import SUPPORTED_PROVIDERS
from .task_engine.engine import TaskManager
from .task_engine.model import Project, TaskState


def _configure_logging(level: str = DEFAULT_CLI_LOG_LEVEL) -> None:
    """Configure loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
            "{message}"
        ),
    )


def _console() -> Console:
    return Console(highlight=False)


def _settings(args: argparse.Namespace) -> Settings:
    settings = load_settings()
    if args.file:
        settings = replace(settings, task_file=Path(args.file).expanduser())
    return settings


def _manager(args: argparse.Namespace) -> TaskManager:
    return TaskManager.from_settings(_settings(args))


def _print_progress(console: Console, project: Project) -> None:
    console.print(f"[cyan]Progress:[/cyan] [bold]{progress_summary(project)}[/bold]")
    console.print(f"  {progress_bar(project)}")


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def _list(args: argparse.Namespace) -> int:
    manager = _manager(args)
    console = _console()

    if args.project:
        project = manager.read_project(args.project)
        tasks = manager.list_tasks(args.project, args.state)
        if args.format == "markdown":
            console.print(format_task_progress_table(project), markup=False)
            return 0
        console.print(f"[cyan]Project[/cyan] [bold]{escape(project.project_id)}[/bold]")
        console.print(f"  [bold]Initial Prompt:[/bold] {escape(project.initial_prompt)}")
        if project.project_plan and project.project_plan != project.initial_prompt:
            console.print(f"  [bold]Project Plan:[/bold] {escape(project.project_plan)}")
        status = "[green]Completed ✓[/green]" if project.completed else "[yellow]In Progress[/yellow]"
        console.print(f"  [bold]Status:[/bold] {status}")
        _print_progress(console, project)
        if tasks:
            console.print(tasks_table(tasks))
        else:
            console.print("[yellow]No tasks match the specified state filter.[/yellow]")
        return 0

    projects = manager.list_projects(args.state)
    if not projects:
        console.print("[yellow]No projects match the specified state filter.[/yellow]")
        return 0
    if args.format == "markdown":
        console.print(format_projects_list(projects), markup=False)
    else:
        console.print(projects_table(projects))
    return 0


def _approve(args: argparse.Namespace) -> int:
    manager = _manager(args)
    console = _console()
    task = manager.approve_task(args.project_id, args.task_id)
    console.print(
        f"[green]✅ Task [bold]{escape(task.id)}[/bold] in project "
        f"[bold]{escape(args.project_id)}[/bold] has been approved.[/green]"
    )
    console.print(task_detail_table(task))

    project = manager.read_project(args.project_id)
    _print_progress(console, project)
    if project.approved_tasks == project.total_tasks:
        console.print(
            "[green]All tasks are approved. Finalize the project with:[/green] "
            f"taskqueue finalize {escape(project.project_id)}"
        )
    return 0


def _finalize(args: argparse.Namespace) -> int:
    manager = _manager(args)
    console = _console()
    project = manager.finalize_project(args.project_id)
    console.print(
        f"[green]✅ Project [bold]{escape(project.project_id)}[/bold] has been marked as completed.[/green]"
    )
    _print_progress(console, project)
    return 0


def _generate_plan(args: argparse.Namespace) -> int:
    manager = _manager(args)
    console = _console()
    project = manager.generate_project_plan(
        args.prompt,
        args.provider,
        args.model,
        attachments=args.attachment or [],
    )
    console.print(
        f"[green]Created project [bold]{escape(project.project_id)}[/bold] "
        f"with {project.total_tasks} tasks.[/green]"
    )
    console.print(tasks_table(project.tasks))
    return 0


def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("uvicorn is required to run the server: pip install uvicorn\n")
        return 1

    from .server.api import create_app

    app = create_app(settings=_settings(args), enable_cors=args.cors)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level_resolved.lower())
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskqueue",
        description="Task queue with human approval gates for LLM agents",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--file", default=None, help="Task file (default: TASK_MANAGER_FILE_PATH or app data dir)")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: TASKQUEUE_LOG_LEVEL, else WARNING; INFO for the server)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    states = [s.value for s in TaskState]
    plist = subparsers.add_parser("list", help="List projects, or the tasks of one project")
    plist.add_argument("-p", "--project", default=None, help="Show details for this project ID")
    plist.add_argument("-s", "--state", default=None, choices=states, help="Filter by state")
    plist.add_argument("--format", default="table", choices=["table", "markdown"])
    plist.set_defaults(func=_list)

    papprove = subparsers.add_parser("approve", help="Approve a completed task")
    papprove.add_argument("project_id")
    papprove.add_argument("task_id")
    papprove.set_defaults(func=_approve)

    pfinal = subparsers.add_parser("finalize", help="Mark a project as complete")
    pfinal.add_argument("project_id")
    pfinal.set_defaults(func=_finalize)

    pgen = subparsers.add_parser("generate-plan", help="Generate a project plan with an LLM and create it")
    pgen.add_argument("prompt")
    pgen.add_argument("--provider", default="openai", choices=list(SUPPORTED_PROVIDERS))
    pgen.add_argument("--model", default="gpt-4o-mini")
    pgen.add_argument("--attachment", action="append", default=None, help="File to attach (repeatable)")
    pgen.set_defaults(func=_generate_plan)

    pserver = subparsers.add_parser("server", help="Start the JSON-RPC server")
    pserver.add_argument("--host", default=DEFAULT_HOST)
    pserver.add_argument("--port", default=DEFAULT_PORT, type=int)
    pserver.add_argument("--cors", action="store_true", help="Allow cross-origin requests")
    pserver.set_defaults(func=_server)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    default_level = DEFAULT_SERVER_LOG_LEVEL if args.command == "server" else DEFAULT_CLI_LOG_LEVEL
    args.log_level_resolved = args.log_level or load_settings().log_level or default_level
    _configure_logging(args.log_level_resolved)

    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return int(handler(args) or 0)
    except TaskQueueError as exc:
        Console(stderr=True, highlight=False).print(Text(str(exc), style="red"))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
