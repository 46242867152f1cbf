"""Tool catalogue exposing every :class:`TaskManager` operation as a named call.

Each tool takes a flat camelCase argument object validated by a pydantic
model before the engine runs.  :func:`call_tool` turns the outcome into the
envelopes the JSON-RPC layer sends back:

* success: ``{"content": [{"type": "text", "text": <json>}]}``
* engine failure: the same shape with ``isError: true`` and a structured
  ``error`` block
* argument or unknown-tool failures: :class:`ToolCallError`, which the HTTP
  layer turns into a JSON-RPC error object.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import JsonRpcErrorCode, TaskQueueError, classify_error, to_json_rpc_code
from ..task_engine.engine import TaskManager
from ..task_engine.model import Project, Task


StateFilter = Literal["open", "pending_approval", "completed", "all"]
StatusValue = Literal["not started", "in progress", "done"]
Provider = Literal["openai", "google", "deepseek"]


class ToolCallError(Exception):
    """Protocol-level failure; becomes a JSON-RPC ``error`` object."""

    def __init__(self, code: JsonRpcErrorCode, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


# ---------------------------------------------------------------------------
# Argument models
# ---------------------------------------------------------------------------

class ToolArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TaskInput(ToolArgs):
    title: str = Field(min_length=1, description="Title of the task")
    description: str = Field(min_length=1, description="Detailed description of the task")
    toolRecommendations: Optional[str] = None
    ruleRecommendations: Optional[str] = None


class ProjectRef(ToolArgs):
    projectId: str = Field(min_length=1, description="The ID of the project (e.g. proj-1)")


class TaskRef(ProjectRef):
    taskId: str = Field(min_length=1, description="The ID of the task (e.g. task-1)")


class ListProjectsArgs(ToolArgs):
    state: Optional[StateFilter] = None


class CreateProjectArgs(ToolArgs):
    initialPrompt: str = Field(min_length=1)
    projectPlan: Optional[str] = None
    tasks: list[TaskInput] = Field(min_length=1)
    autoApprove: Optional[bool] = None


class AddTasksArgs(ProjectRef):
    tasks: list[TaskInput] = Field(min_length=1)


class UpdateProjectArgs(ProjectRef):
    initialPrompt: Optional[str] = Field(default=None, min_length=1)
    projectPlan: Optional[str] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _one_field(self) -> "UpdateProjectArgs":
        if self.initialPrompt is None and self.projectPlan is None:
            raise ValueError("At least one of initialPrompt or projectPlan must be provided")
        return self


class GenerateProjectPlanArgs(ToolArgs):
    prompt: str = Field(min_length=1)
    provider: Provider
    model: str = Field(min_length=1)
    attachments: list[str] = Field(default_factory=list)


class ListTasksArgs(ToolArgs):
    projectId: Optional[str] = Field(default=None, min_length=1)
    state: Optional[StateFilter] = None


class ReadTaskArgs(ToolArgs):
    taskId: str = Field(min_length=1)


class CreateTaskArgs(ProjectRef):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    toolRecommendations: Optional[str] = None
    ruleRecommendations: Optional[str] = None


class UpdateTaskArgs(TaskRef):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    status: Optional[StatusValue] = None
    completedDetails: Optional[str] = None
    toolRecommendations: Optional[str] = None
    ruleRecommendations: Optional[str] = None

    @model_validator(mode="after")
    def _details_when_done(self) -> "UpdateTaskArgs":
        if self.status == "done" and not (self.completedDetails or "").strip():
            raise ValueError("completedDetails is required when setting status to 'done'")
        return self


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def _task_summaries(tasks: list[Task]) -> list[dict[str, str]]:
    return [t.summary() for t in tasks]


def _created(project: Project) -> dict[str, Any]:
    return {
        "projectId": project.project_id,
        "totalTasks": project.total_tasks,
        "tasks": _task_summaries(project.tasks),
        "message": (
            f"Project {project.project_id} created with {project.total_tasks} tasks. "
            "Use get_next_task to start working."
        ),
    }


def _list_projects(tm: TaskManager, args: ListProjectsArgs) -> dict[str, Any]:
    projects = tm.list_projects(args.state)
    return {
        "message": f"Found {len(projects)} projects",
        "projects": [p.listing() for p in projects],
    }


def _read_project(tm: TaskManager, args: ProjectRef) -> dict[str, Any]:
    project = tm.read_project(args.projectId)
    return {**project.to_dict(), **project.listing()}


def _create_project(tm: TaskManager, args: CreateProjectArgs) -> dict[str, Any]:
    project = tm.create_project(
        args.initialPrompt,
        [t.model_dump() for t in args.tasks],
        project_plan=args.projectPlan,
        auto_approve=bool(args.autoApprove),
    )
    return _created(project)


def _delete_project(tm: TaskManager, args: ProjectRef) -> dict[str, Any]:
    tm.delete_project(args.projectId)
    return {"status": "project_deleted", "message": f"Project {args.projectId} has been deleted."}


def _add_tasks(tm: TaskManager, args: AddTasksArgs) -> dict[str, Any]:
    tasks = tm.add_tasks_to_project(args.projectId, [t.model_dump() for t in args.tasks])
    return {
        "message": f"Added {len(tasks)} tasks to project {args.projectId}.",
        "newTasks": _task_summaries(tasks),
    }


def _finalize_project(tm: TaskManager, args: ProjectRef) -> dict[str, Any]:
    project = tm.finalize_project(args.projectId)
    return {
        "projectId": project.project_id,
        "message": "Project has been marked as complete.",
    }


def _update_project(tm: TaskManager, args: UpdateProjectArgs) -> dict[str, Any]:
    project = tm.update_project(args.projectId, args.initialPrompt, args.projectPlan)
    return project.to_dict()


def _generate_project_plan(tm: TaskManager, args: GenerateProjectPlanArgs) -> dict[str, Any]:
    project = tm.generate_project_plan(args.prompt, args.provider, args.model, args.attachments)
    return _created(project)


def _list_tasks(tm: TaskManager, args: ListTasksArgs) -> dict[str, Any]:
    tasks = tm.list_tasks(args.projectId, args.state)
    return {"message": f"Found {len(tasks)} tasks", "tasks": [t.to_dict() for t in tasks]}


def _read_task(tm: TaskManager, args: ReadTaskArgs) -> dict[str, Any]:
    project, task = tm.read_task(args.taskId)
    return {"projectId": project.project_id, "task": task.to_dict()}


def _create_task(tm: TaskManager, args: CreateTaskArgs) -> dict[str, Any]:
    task = tm.create_task(
        args.projectId,
        args.title,
        args.description,
        args.toolRecommendations,
        args.ruleRecommendations,
    )
    return {"message": f"Task {task.id} created in project {args.projectId}.", "task": task.to_dict()}


def _update_task(tm: TaskManager, args: UpdateTaskArgs) -> dict[str, Any]:
    result = tm.update_task(
        args.projectId,
        args.taskId,
        title=args.title,
        description=args.description,
        status=args.status,
        completed_details=args.completedDetails,
        tool_recommendations=args.toolRecommendations,
        rule_recommendations=args.ruleRecommendations,
    )
    return {
        "task": result.task.to_dict(),
        "approvalRequired": result.approval_required,
        "message": result.message,
    }


def _delete_task(tm: TaskManager, args: TaskRef) -> dict[str, Any]:
    tm.delete_task(args.projectId, args.taskId)
    return {"status": "task_deleted", "message": f"Task {args.taskId} has been deleted."}


def _approve_task(tm: TaskManager, args: TaskRef) -> dict[str, Any]:
    task = tm.approve_task(args.projectId, args.taskId)
    return {
        "projectId": args.projectId,
        "task": {
            "id": task.id,
            "title": task.title,
            "description": task.description,
            "completedDetails": task.completed_details,
            "approved": task.approved,
        },
        "message": f"Task {task.id} has been approved.",
    }


def _get_next_task(tm: TaskManager, args: ProjectRef) -> dict[str, Any]:
    result = tm.get_next_task(args.projectId)
    if result.task is None:
        return {"status": "all_tasks_done", "message": result.message}
    return {"status": "next_task", "task": result.task.summary(), "message": result.message}


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    args_model: type[ToolArgs]
    handler: Callable[[TaskManager, Any], dict[str, Any]]

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.args_model.model_json_schema(),
        }


_TOOL_LIST = [
    Tool("list_projects", "List all projects, optionally filtered by state.",
         ListProjectsArgs, _list_projects),
    Tool("read_project", "Read all information for a given project by its ID.",
         ProjectRef, _read_project),
    Tool("create_project", "Create a new project with an initial prompt and a list of tasks.",
         CreateProjectArgs, _create_project),
    Tool("delete_project", "Delete a project and all of its tasks.",
         ProjectRef, _delete_project),
    Tool("add_tasks_to_project", "Add new tasks to an existing, open project.",
         AddTasksArgs, _add_tasks),
    Tool("finalize_project", "Mark a project as complete once every task is done and approved.",
         ProjectRef, _finalize_project),
    Tool("update_project", "Update the initial prompt or plan of an open project.",
         UpdateProjectArgs, _update_project),
    Tool("generate_project_plan",
         "Ask an LLM provider for a project plan and tasks, then create the project.",
         GenerateProjectPlanArgs, _generate_project_plan),
    Tool("list_tasks", "List tasks, optionally within one project and filtered by state.",
         ListTasksArgs, _list_tasks),
    Tool("read_task", "Get details of a specific task by its ID.",
         ReadTaskArgs, _read_task),
    Tool("create_task", "Create a new task within an existing project.",
         CreateTaskArgs, _create_task),
    Tool("update_task",
         "Modify a task's title, description, recommendations or status. "
         "Setting status to 'done' requires completedDetails.",
         UpdateTaskArgs, _update_task),
    Tool("delete_task", "Remove a task from a project.",
         TaskRef, _delete_task),
    Tool("approve_task", "Approve a completed task. Meant for the user, not the agent.",
         TaskRef, _approve_task),
    Tool("get_next_task", "Get the next task to work on in a project.",
         ProjectRef, _get_next_task),
]

TOOLS: dict[str, Tool] = {tool.name: tool for tool in _TOOL_LIST}


def list_tools() -> list[dict[str, Any]]:
    return [tool.describe() for tool in _TOOL_LIST]


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------

def success_result(payload: Any) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": json.dumps(payload, indent=2)}]}


def error_result(error: TaskQueueError) -> dict[str, Any]:
    return {
        "isError": True,
        "content": [{"type": "text", "text": f"Tool execution failed: {error.message}"}],
        "error": error.to_dict(),
    }


def _format_validation(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "Invalid arguments: " + "; ".join(parts)


def call_tool(manager: TaskManager, name: str, arguments: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Validate *arguments*, run tool *name* and wrap the outcome.

    Raises:
        ToolCallError: Unknown tool (``-32601``) or invalid arguments
            (``-32602``), including validation-category engine errors.
    """
    tool = TOOLS.get(name)
    if tool is None:
        raise ToolCallError(JsonRpcErrorCode.METHOD_NOT_FOUND, f"Unknown tool: {name}")

    try:
        args = tool.args_model.model_validate(arguments or {})
    except PydanticValidationError as exc:
        raise ToolCallError(
            JsonRpcErrorCode.INVALID_PARAMS,
            _format_validation(exc),
            data=json.loads(exc.json(include_url=False)),
        ) from exc

    try:
        payload = tool.handler(manager, args)
    except TaskQueueError as exc:
        if to_json_rpc_code(exc.code) == JsonRpcErrorCode.INVALID_PARAMS:
            raise ToolCallError(JsonRpcErrorCode.INVALID_PARAMS, exc.message, data=exc.to_dict()) from exc
        logger.info("Tool {} failed: {}", name, exc)
        return error_result(exc)
    except Exception as exc:
        logger.exception("Tool {} raised an unexpected error", name)
        return error_result(classify_error(exc))

    return success_result(payload)
