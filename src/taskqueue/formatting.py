"""Read-only renderings of projects and tasks for the CLI and text output."""

from __future__ import annotations

from rich.table import Table
from rich.text import Text

from .task_engine.model import Project, Task, TaskStatus

APPROVED_CHAR = "▓"
DONE_CHAR = "▒"
REMAINING_CHAR = "░"

_STATUS_STYLE = {
    TaskStatus.DONE: ("Done ✓", "green"),
    TaskStatus.IN_PROGRESS: ("In Progress ⟳", "yellow"),
    TaskStatus.NOT_STARTED: ("Not Started ○", "blue"),
}


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _plain(text: str) -> Text:
    # user text is never parsed as rich markup
    return Text(text)


def progress_bar(project: Project) -> str:
    """One character per task: approved, done but unapproved, then remaining."""
    approved = project.approved_tasks
    done = project.done_tasks
    return (
        APPROVED_CHAR * approved
        + DONE_CHAR * max(done - approved, 0)
        + REMAINING_CHAR * (project.total_tasks - done)
    )


def progress_summary(project: Project) -> str:
    return (
        f"{project.approved_tasks}/{project.done_tasks}/{project.total_tasks} "
        "(approved/completed/total)"
    )


def status_text(task: Task) -> Text:
    label, style = _STATUS_STYLE[task.status]
    return Text(label, style=style)


def approved_text(task: Task) -> Text:
    return Text("Yes ✓", style="green") if task.approved else Text("No ✗", style="red")


# ---------------------------------------------------------------------------
# rich tables
# ---------------------------------------------------------------------------

def projects_table(projects: list[Project]) -> Table:
    table = Table(title="Projects")
    table.add_column("Project ID", style="bold")
    table.add_column("Initial Prompt")
    table.add_column("Status")
    table.add_column("Approved/Done/Total")
    table.add_column("Bar")
    for project in projects:
        status = Text("Completed ✓", style="green") if project.completed else Text("In Progress", style="yellow")
        table.add_row(
            _plain(project.project_id),
            _plain(_truncate(project.initial_prompt, 60)),
            status,
            f"{project.approved_tasks}/{project.done_tasks}/{project.total_tasks}",
            progress_bar(project),
        )
    return table


def tasks_table(tasks: list[Task]) -> Table:
    table = Table(title="Tasks")
    table.add_column("Task ID", style="bold")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Approved")
    table.add_column("Completed Details")
    for task in tasks:
        table.add_row(
            _plain(task.id),
            _plain(task.title),
            status_text(task),
            approved_text(task),
            _plain(_truncate(task.completed_details, 60)),
        )
    return table


def task_detail_table(task: Task) -> Table:
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("ID", _plain(task.id))
    table.add_row("Title", _plain(task.title))
    table.add_row("Description", _plain(task.description))
    table.add_row("Status", status_text(task))
    table.add_row("Approved", approved_text(task))
    if task.completed_details:
        table.add_row("Completed Details", _plain(task.completed_details))
    if task.tool_recommendations:
        table.add_row("Tool Recommendations", _plain(task.tool_recommendations))
    if task.rule_recommendations:
        table.add_row("Rule Recommendations", _plain(task.rule_recommendations))
    return table


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------

_MD_STATUS = {
    TaskStatus.DONE: "✅ Done",
    TaskStatus.IN_PROGRESS: "🔄 In Progress",
    TaskStatus.NOT_STARTED: "⏳ Not Started",
}


def format_task_progress_table(project: Project) -> str:
    lines = [
        "",
        "Progress Status:",
        "| Task ID | Title | Description | Status | Approval | Tools | Rules |",
        "|---------|-------|-------------|--------|----------|-------|-------|",
    ]
    for task in project.tasks:
        lines.append(
            f"| {task.id} | {task.title} | {_truncate(task.description, 50)} "
            f"| {_MD_STATUS[task.status]} | {'✅ Approved' if task.approved else '⏳ Pending'} "
            f"| {'✓' if task.tool_recommendations else '-'} "
            f"| {'✓' if task.rule_recommendations else '-'} |"
        )
    return "\n".join(lines) + "\n"


def format_projects_list(projects: list[Project]) -> str:
    lines = [
        "",
        "Projects List:",
        "| Project ID | Initial Prompt | Total Tasks | Completed | Approved |",
        "|------------|----------------|-------------|-----------|----------|",
    ]
    for project in projects:
        lines.append(
            f"| {project.project_id} | {_truncate(project.initial_prompt, 30)} "
            f"| {project.total_tasks} | {project.done_tasks} | {project.approved_tasks} |"
        )
    return "\n".join(lines) + "\n"
