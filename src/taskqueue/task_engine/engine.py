"""Lifecycle engine: project/task CRUD, status transitions and approval gating.

This is the primary entry-point for all project and task manipulation.  Every
public operation reloads the collection from :class:`ProjectStore`, validates
the request against the model invariants, mutates the snapshot and saves it
back.  Validation always finishes before the first mutation, so a failed call
leaves the store untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from loguru import logger

from .. import planner
from ..config import Settings, load_settings
from ..errors import (
    CannotModifyApprovedTask,
    ErrorCode,
    InvalidState,
    ProjectAlreadyCompleted,
    ProjectNotFound,
    TaskAlreadyApproved,
    TaskNotDone,
    TaskNotFound,
    TasksNotAllApproved,
    TasksNotAllDone,
    ValidationError,
)
from ..status_file import write_status_file
from .model import (
    PROJECT_ID_PREFIX,
    TASK_ID_PREFIX,
    Project,
    Task,
    TaskManagerFile,
    TaskSpec,
    TaskState,
    TaskStatus,
)
from .store import ProjectStore
from .transitions import validate_transition


APPROVE_COMMAND = "taskqueue approve {project_id} {task_id}"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class UpdateResult:
    task: Task
    approval_required: bool
    message: str


@dataclass
class NextTaskResult:
    project_id: str
    task: Optional[Task]
    message: str

    @property
    def all_tasks_done(self) -> bool:
        return self.task is None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_state(state: Union[TaskState, str, None]) -> TaskState:
    if state is None:
        return TaskState.ALL
    if isinstance(state, TaskState):
        return state
    try:
        return TaskState(str(state))
    except ValueError:
        valid = ", ".join(s.value for s in TaskState)
        raise InvalidState(f"Invalid state filter: {state}. Must be one of: {valid}") from None


def _parse_status(status: Union[TaskStatus, str]) -> TaskStatus:
    if isinstance(status, TaskStatus):
        return status
    try:
        return TaskStatus(str(status))
    except ValueError:
        valid = ", ".join(f"'{s.value}'" for s in TaskStatus)
        raise ValidationError(f"Invalid status: must be one of {valid}") from None


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid or missing required parameter: {name} (Expected non-empty string)")
    return value


def _validate_specs(specs: Iterable[Any]) -> list[TaskSpec]:
    out: list[TaskSpec] = []
    for index, raw in enumerate(specs):
        spec = TaskSpec.from_mapping(raw)
        _require_text(spec.title, f"title in task at index {index}")
        _require_text(spec.description, f"description in task at index {index}")
        out.append(spec)
    return out


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class TaskManager:
    """Enforce the project/task lifecycle on top of a :class:`ProjectStore`.

    Parameters
    ----------
    store:
        Repository, or a path to the JSON collection file.
    current_project_path:
        When set, task updates refresh the ``current_status.mdc`` rule file
        under this directory.
    settings:
        Runtime settings; used for provider API keys by
        :meth:`generate_project_plan`.
    """

    def __init__(
        self,
        store: Union[ProjectStore, Path, str],
        current_project_path: Optional[Path] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store if isinstance(store, ProjectStore) else ProjectStore(Path(store))
        self.current_project_path = current_project_path
        self.settings = settings
        self._data = TaskManagerFile()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TaskManager":
        settings = settings or load_settings()
        return cls(
            ProjectStore(settings.task_file),
            current_project_path=settings.current_project_path,
            settings=settings,
        )

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def reload(self) -> TaskManagerFile:
        """Replace the in-memory snapshot with the current file contents."""
        self._data = self.store.load()
        return self._data

    def _save(self) -> None:
        self.store.save(self._data)

    def _require_project(self, project_id: str) -> Project:
        project = self._data.get_project(project_id)
        if project is None:
            raise ProjectNotFound(f"Project {project_id} not found")
        return project

    @staticmethod
    def _require_task(project: Project, task_id: str) -> Task:
        task = project.get_task(task_id)
        if task is None:
            raise TaskNotFound(f"Task {task_id} not found")
        return task

    def _build_tasks(self, specs: list[TaskSpec]) -> list[Task]:
        """Assign fresh store-wide ids, in order, to *specs*."""
        _, next_task = self._data.max_ids()
        tasks: list[Task] = []
        for spec in specs:
            next_task += 1
            tasks.append(
                Task(
                    id=f"{TASK_ID_PREFIX}{next_task}",
                    title=spec.title,
                    description=spec.description,
                    tool_recommendations=spec.tool_recommendations,
                    rule_recommendations=spec.rule_recommendations,
                )
            )
        return tasks

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(
        self,
        initial_prompt: str,
        tasks: Iterable[Any],
        project_plan: Optional[str] = None,
        auto_approve: bool = False,
    ) -> Project:
        """Create and persist a project with one or more tasks."""
        _require_text(initial_prompt, "initialPrompt")
        specs = _validate_specs(tasks)
        if not specs:
            raise ValidationError("A project needs at least one task")
        if project_plan is not None and not isinstance(project_plan, str):
            raise ValidationError("Invalid type for optional parameter 'projectPlan' (Expected string)")

        self.reload()
        max_project, _ = self._data.max_ids()
        project = Project(
            project_id=f"{PROJECT_ID_PREFIX}{max_project + 1}",
            initial_prompt=initial_prompt,
            project_plan=project_plan or initial_prompt,
            tasks=self._build_tasks(specs),
            completed=False,
            auto_approve=auto_approve is True,
        )
        self._data.projects.append(project)
        self._save()
        logger.info("Created project {} with {} tasks", project.project_id, len(project.tasks))
        return project

    def read_project(self, project_id: str) -> Project:
        self.reload()
        return self._require_project(project_id)

    def update_project(
        self,
        project_id: str,
        initial_prompt: Optional[str] = None,
        project_plan: Optional[str] = None,
    ) -> Project:
        """Replace the prompt and/or plan of an open project."""
        if initial_prompt is None and project_plan is None:
            raise ValidationError("At least one of initialPrompt or projectPlan must be provided")
        if initial_prompt is not None:
            _require_text(initial_prompt, "initialPrompt")
        if project_plan is not None:
            _require_text(project_plan, "projectPlan")

        self.reload()
        project = self._require_project(project_id)
        if project.completed:
            raise ProjectAlreadyCompleted("Project is already completed")

        if initial_prompt is not None:
            project.initial_prompt = initial_prompt
        if project_plan is not None:
            project.project_plan = project_plan
        self._save()
        logger.info("Updated project {}", project_id)
        return project

    def delete_project(self, project_id: str) -> Project:
        """Remove a project and every task it owns."""
        self.reload()
        project = self._require_project(project_id)
        self._data.projects.remove(project)
        self._save()
        logger.info("Deleted project {} ({} tasks)", project_id, len(project.tasks))
        return project

    def list_projects(self, state: Union[TaskState, str, None] = None) -> list[Project]:
        target = _parse_state(state)
        self.reload()
        return [p for p in self._data.projects if p.matches(target)]

    def get_next_task(self, project_id: str) -> NextTaskResult:
        """Return the first unapproved task in stored order, whatever its status."""
        self.reload()
        project = self._require_project(project_id)
        for task in project.tasks:
            if not task.approved:
                return NextTaskResult(
                    project_id=project.project_id,
                    task=task,
                    message=f"Next task is {task.id}: {task.title}",
                )
        return NextTaskResult(
            project_id=project.project_id,
            task=None,
            message=(
                "All tasks have been completed and approved. "
                "Awaiting project completion approval."
            ),
        )

    def finalize_project(self, project_id: str) -> Project:
        """Mark a project completed once every task is done and approved."""
        self.reload()
        project = self._require_project(project_id)
        if project.completed:
            raise ProjectAlreadyCompleted("Project is already completed")
        pending = [t.id for t in project.tasks if not t.is_done]
        if pending:
            raise TasksNotAllDone("Not all tasks are done", details={"tasks": pending})
        unapproved = [t.id for t in project.tasks if not t.approved]
        if unapproved:
            raise TasksNotAllApproved("Not all done tasks are approved", details={"tasks": unapproved})

        project.completed = True
        self._save()
        write_status_file(self.current_project_path, None, None)
        logger.info("Finalized project {}", project_id)
        return project

    def generate_project_plan(
        self,
        prompt: str,
        provider: str,
        model: str,
        attachments: Iterable[str] = (),
    ) -> Project:
        """Ask *provider* for a plan and create a project from it."""
        _require_text(prompt, "prompt")
        contents = [self.store.read_attachment(name) for name in attachments]
        settings = self.settings or load_settings()
        plan = planner.generate_plan(
            prompt,
            provider,
            model,
            contents,
            api_key=settings.api_key_for(provider),
        )
        return self.create_project(
            prompt,
            [t.model_dump() for t in plan.tasks],
            project_plan=plan.projectPlan or None,
        )

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def add_tasks_to_project(self, project_id: str, tasks: Iterable[Any]) -> list[Task]:
        """Append new tasks to an open project, in the order given."""
        specs = _validate_specs(tasks)
        self.reload()
        project = self._require_project(project_id)
        if project.completed:
            raise ProjectAlreadyCompleted("Project is already completed")

        new_tasks = self._build_tasks(specs)
        project.tasks.extend(new_tasks)
        self._save()
        logger.info("Added {} tasks to project {}", len(new_tasks), project_id)
        return new_tasks

    def create_task(
        self,
        project_id: str,
        title: str,
        description: str,
        tool_recommendations: Optional[str] = None,
        rule_recommendations: Optional[str] = None,
    ) -> Task:
        spec = TaskSpec(title, description, tool_recommendations, rule_recommendations)
        return self.add_tasks_to_project(project_id, [spec])[0]

    def list_tasks(
        self,
        project_id: Optional[str] = None,
        state: Union[TaskState, str, None] = None,
    ) -> list[Task]:
        target = _parse_state(state)
        self.reload()
        if project_id is not None:
            tasks = list(self._require_project(project_id).tasks)
        else:
            tasks = self._data.all_tasks()
        return [t for t in tasks if t.matches(target)]

    def read_task(self, task_id: str) -> tuple[Project, Task]:
        """Find a task anywhere in the store; returns ``(owning project, task)``."""
        self.reload()
        project, task = self._data.find_task(task_id)
        if project is None or task is None:
            raise TaskNotFound(f"Task {task_id} not found")
        return project, task

    def read_task_in_project(self, project_id: str, task_id: str) -> Task:
        self.reload()
        return self._require_task(self._require_project(project_id), task_id)

    def update_task(
        self,
        project_id: str,
        task_id: str,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Union[TaskStatus, str, None] = None,
        completed_details: Optional[str] = None,
        tool_recommendations: Optional[str] = None,
        rule_recommendations: Optional[str] = None,
    ) -> UpdateResult:
        """Apply a partial update; all checks run before any field changes."""
        self.reload()
        project = self._require_project(project_id)
        task = self._require_task(project, task_id)
        if task.approved:
            raise CannotModifyApprovedTask("Cannot modify an approved task")

        if title is not None:
            _require_text(title, "title")
        if description is not None:
            _require_text(description, "description")
        for name, value in (("toolRecommendations", tool_recommendations),
                            ("ruleRecommendations", rule_recommendations)):
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"Invalid {name}: must be a string")

        new_status: Optional[TaskStatus] = None
        if status is not None:
            new_status = _parse_status(status)
            validate_transition(task.status, new_status)
        final_status = new_status or task.status

        if final_status == TaskStatus.DONE:
            if new_status == TaskStatus.DONE or completed_details is not None:
                if not isinstance(completed_details, str) or not completed_details.strip():
                    raise ValidationError(
                        "completedDetails is required and must be non-empty when status is 'done'",
                        ErrorCode.MISSING_PARAMETER,
                    )
        elif completed_details is not None:
            raise ValidationError("completedDetails can only be set when the task is 'done'")

        # -- all checks passed; mutate -------------------------------------
        if title is not None:
            task.title = title
        if description is not None:
            task.description = description
        if tool_recommendations is not None:
            task.tool_recommendations = tool_recommendations
        if rule_recommendations is not None:
            task.rule_recommendations = rule_recommendations
        if new_status is not None:
            task.status = new_status
        if final_status == TaskStatus.DONE:
            if completed_details is not None:
                task.completed_details = completed_details
        else:
            task.completed_details = ""

        approval_required = False
        if new_status == TaskStatus.DONE:
            if project.auto_approve:
                task.approved = True
                message = f"Task {task.id} marked done and auto-approved; no manual approval needed."
            else:
                approval_required = True
                message = (
                    f"Task {task.id} marked done. It must be approved by the user before "
                    f"moving on: `{APPROVE_COMMAND.format(project_id=project_id, task_id=task.id)}`"
                )
        else:
            message = f"Task {task.id} updated."

        self._save()
        status_task = None if task.status == TaskStatus.NOT_STARTED else task
        write_status_file(self.current_project_path, project, status_task)
        logger.info("Updated task {} in project {} (status={})", task.id, project_id, task.status.value)
        return UpdateResult(task=task, approval_required=approval_required, message=message)

    def delete_task(self, project_id: str, task_id: str) -> Task:
        """Remove a task; any task may be deleted regardless of status."""
        self.reload()
        project = self._require_project(project_id)
        task = self._require_task(project, task_id)
        project.tasks.remove(task)
        self._save()
        logger.info("Deleted task {} from project {}", task_id, project_id)
        return task

    def approve_task(self, project_id: str, task_id: str) -> Task:
        """Latch ``approved`` on a done task."""
        self.reload()
        project = self._require_project(project_id)
        task = self._require_task(project, task_id)
        if not task.is_done:
            raise TaskNotDone(f"Task {task_id} is not done yet (status: {task.status.value})")
        if task.approved:
            raise TaskAlreadyApproved(f"Task {task_id} is already approved")

        task.approved = True
        self._save()
        logger.info("Approved task {} in project {}", task_id, project_id)
        return task
