"""Project and task model for the lifecycle engine.

Projects own an ordered list of tasks.  Both are plain dataclasses that
serialize to the camelCase JSON layout of ``tasks.json`` via ``to_dict()`` /
``from_dict()``.  Derived classification (open / pending approval / completed)
is computed here and never stored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..errors import ErrorCode, FileSystemError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Work status of a single task."""

    NOT_STARTED = "not started"
    IN_PROGRESS = "in progress"
    DONE = "done"


class TaskState(str, Enum):
    """Listing filter derived from status + approval."""

    OPEN = "open"
    PENDING_APPROVAL = "pending_approval"
    COMPLETED = "completed"
    ALL = "all"


PROJECT_ID_PREFIX = "proj-"
TASK_ID_PREFIX = "task-"

_ID_SUFFIX_RE = re.compile(r"^(?:proj|task)-(\d+)$")


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

def _id_number(value: str) -> Optional[int]:
    match = _ID_SUFFIX_RE.match(value or "")
    return int(match.group(1)) if match else None


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _stored_bool(data: dict[str, Any], key: str, owner: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise FileSystemError(
            f"Failed to parse tasks file: {owner} has non-boolean {key!r}: {value!r}",
            ErrorCode.FILE_PARSE_ERROR,
        )
    return value


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A unit of work inside a project."""

    id: str
    title: str
    description: str
    status: TaskStatus = TaskStatus.NOT_STARTED
    approved: bool = False
    completed_details: str = ""
    tool_recommendations: Optional[str] = None
    rule_recommendations: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "approved": self.approved,
            "completedDetails": self.completed_details,
        }
        if self.tool_recommendations is not None:
            data["toolRecommendations"] = self.tool_recommendations
        if self.rule_recommendations is not None:
            data["ruleRecommendations"] = self.rule_recommendations
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        task_id = str(data.get("id", ""))
        raw_status = data.get("status", TaskStatus.NOT_STARTED.value)
        try:
            status = TaskStatus(raw_status)
        except ValueError as exc:
            raise FileSystemError(
                f"Failed to parse tasks file: task {task_id} has unknown status {raw_status!r}",
                ErrorCode.FILE_PARSE_ERROR,
            ) from exc
        return cls(
            id=task_id,
            title=str(data.get("title", "")),
            description=str(data.get("description", "")),
            status=status,
            approved=_stored_bool(data, "approved", f"task {task_id}"),
            completed_details=str(data.get("completedDetails") or ""),
            tool_recommendations=_optional_str(data.get("toolRecommendations")),
            rule_recommendations=_optional_str(data.get("ruleRecommendations")),
        )

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    @property
    def is_pending_approval(self) -> bool:
        return self.is_done and not self.approved

    @property
    def is_completed(self) -> bool:
        return self.is_done and self.approved

    def matches(self, state: TaskState) -> bool:
        if state == TaskState.OPEN:
            return not self.approved
        if state == TaskState.PENDING_APPROVAL:
            return self.is_pending_approval
        if state == TaskState.COMPLETED:
            return self.is_completed
        return True

    def summary(self) -> dict[str, str]:
        return {"id": self.id, "title": self.title, "description": self.description}


@dataclass
class TaskSpec:
    """Caller-supplied definition of a task that does not exist yet."""

    title: str
    description: str
    tool_recommendations: Optional[str] = None
    rule_recommendations: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Any) -> "TaskSpec":
        """Accept a ``TaskSpec``, or a dict in camelCase or snake_case."""
        if isinstance(data, TaskSpec):
            return data
        if not isinstance(data, dict):
            return cls(title="", description="")
        return cls(
            title=data.get("title") if isinstance(data.get("title"), str) else "",
            description=data.get("description") if isinstance(data.get("description"), str) else "",
            tool_recommendations=_optional_str(
                data.get("toolRecommendations", data.get("tool_recommendations"))
            ),
            rule_recommendations=_optional_str(
                data.get("ruleRecommendations", data.get("rule_recommendations"))
            ),
        )


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------

@dataclass
class Project:
    """An ordered collection of tasks with a one-way completion flag."""

    project_id: str
    initial_prompt: str
    project_plan: str = ""
    tasks: list[Task] = field(default_factory=list)
    completed: bool = False
    auto_approve: bool = False

    def __post_init__(self) -> None:
        self.project_plan = self.project_plan or self.initial_prompt

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "initialPrompt": self.initial_prompt,
            "projectPlan": self.project_plan,
            "tasks": [t.to_dict() for t in self.tasks],
            "completed": self.completed,
            "autoApprove": self.auto_approve,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        prompt = str(data.get("initialPrompt", ""))
        project_id = str(data.get("projectId", ""))
        return cls(
            project_id=project_id,
            initial_prompt=prompt,
            project_plan=str(data.get("projectPlan") or prompt),
            tasks=[Task.from_dict(t) for t in data.get("tasks", []) or [] if isinstance(t, dict)],
            completed=_stored_bool(data, "completed", f"project {project_id}"),
            auto_approve=_stored_bool(data, "autoApprove", f"project {project_id}"),
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def total_tasks(self) -> int:
        return len(self.tasks)

    @property
    def done_tasks(self) -> int:
        return sum(1 for t in self.tasks if t.is_done)

    @property
    def approved_tasks(self) -> int:
        return sum(1 for t in self.tasks if t.approved)

    def matches(self, state: TaskState) -> bool:
        if state == TaskState.OPEN:
            return any(not t.is_done for t in self.tasks)
        if state == TaskState.PENDING_APPROVAL:
            return any(t.is_pending_approval for t in self.tasks)
        if state == TaskState.COMPLETED:
            return self.completed
        return True

    def listing(self) -> dict[str, Any]:
        """Read-only projection with derived counts, used by listings."""
        return {
            "projectId": self.project_id,
            "initialPrompt": self.initial_prompt,
            "totalTasks": self.total_tasks,
            "completedTasks": self.done_tasks,
            "approvedTasks": self.approved_tasks,
            "completed": self.completed,
        }


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

@dataclass
class TaskManagerFile:
    """The whole store: every project, in insertion order."""

    projects: list[Project] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"projects": [p.to_dict() for p in self.projects]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskManagerFile":
        raw = data.get("projects", []) or []
        return cls(projects=[Project.from_dict(p) for p in raw if isinstance(p, dict)])

    def get_project(self, project_id: str) -> Optional[Project]:
        for project in self.projects:
            if project.project_id == project_id:
                return project
        return None

    def find_task(self, task_id: str) -> tuple[Optional[Project], Optional[Task]]:
        for project in self.projects:
            task = project.get_task(task_id)
            if task is not None:
                return project, task
        return None, None

    def all_tasks(self) -> list[Task]:
        return [t for p in self.projects for t in p.tasks]

    def max_ids(self) -> tuple[int, int]:
        """Return the highest numeric project and task id suffixes in use."""
        max_project = 0
        max_task = 0
        for project in self.projects:
            num = _id_number(project.project_id)
            if num is not None:
                max_project = max(max_project, num)
            for task in project.tasks:
                num = _id_number(task.id)
                if num is not None:
                    max_task = max(max_task, num)
        return max_project, max_task
