"""Render and write the ``current_status.mdc`` rule file.

The file lets an editor-side agent see which project and task are currently
active.  It is only written when a current project path is configured.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from loguru import logger

from .constants import STATUS_FILE_DIR, STATUS_FILE_NAME
from .task_engine.model import Project, Task

_FRONT_MATTER = "---\ndescription: Status of the current task\nglobs:\nalwaysApply: true\n---"


def _indent(text: str) -> str:
    return text.replace("\\n", "\n").replace("\n", "\n   ")


def format_status_file_content(project: Optional[Project], task: Optional[Task]) -> str:
    project_section = "None"
    if project is not None:
        project_section = (
            f"Project Name: {project.initial_prompt}\n"
            f"Project Detail:\n   {_indent(project.project_plan)}"
        )

    task_section = "None"
    if task is not None:
        task_section = (
            f"Title: {task.title}\n"
            f"Status: {task.status.value}\n"
            f"Description:\n   {_indent(task.description)}"
        )

    return f"{_FRONT_MATTER}\n\n# Project\n\n{project_section}\n\n# Task\n\n{task_section}\n"


def status_file_path(current_project_path: Path) -> Path:
    return current_project_path.joinpath(*STATUS_FILE_DIR, STATUS_FILE_NAME)


def write_status_file(
    current_project_path: Optional[Path],
    project: Optional[Project],
    task: Optional[Task],
) -> Optional[Path]:
    """Write the status file; returns its path, or None when disabled or on failure."""
    if current_project_path is None:
        return None
    path = status_file_path(current_project_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(format_status_file_content(project, task), encoding="utf-8")
    except OSError as exc:
        logger.warning("Failed to update {}: {}", path, exc)
        return None
    return path
