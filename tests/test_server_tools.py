"""Tests for the tool catalogue and result envelopes (server/tools.py)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from taskqueue import planner
from taskqueue.config import Settings
from taskqueue.errors import JsonRpcErrorCode
from taskqueue.server.tools import TOOLS, ToolCallError, call_tool, list_tools
from taskqueue.task_engine.engine import TaskManager


EXPECTED_TOOLS = {
    "list_projects", "read_project", "create_project", "delete_project",
    "add_tasks_to_project", "finalize_project", "update_project",
    "generate_project_plan", "list_tasks", "read_task", "create_task",
    "update_task", "delete_task", "approve_task", "get_next_task",
}


@pytest.fixture
def manager(tmp_path: Path) -> TaskManager:
    task_file = tmp_path / "tasks.json"
    return TaskManager(task_file, settings=Settings(task_file=task_file))


def _call(manager: TaskManager, name: str, **arguments) -> dict:
    result = call_tool(manager, name, arguments)
    assert not result.get("isError"), result
    return json.loads(result["content"][0]["text"])


def _create(manager: TaskManager, auto_approve: bool = False) -> dict:
    return _call(
        manager, "create_project",
        initialPrompt="Build it",
        tasks=[{"title": "T1", "description": "D1"}, {"title": "T2", "description": "D2"}],
        autoApprove=auto_approve,
    )


class TestCatalogue:
    def test_names(self) -> None:
        assert set(TOOLS) == EXPECTED_TOOLS
        assert {t["name"] for t in list_tools()} == EXPECTED_TOOLS

    def test_schemas_are_camel_case(self) -> None:
        schema = TOOLS["update_task"].describe()["inputSchema"]
        assert set(schema["required"]) == {"projectId", "taskId"}
        assert "completedDetails" in schema["properties"]
        assert schema["additionalProperties"] is False


class TestValidation:
    def test_unknown_tool(self, manager: TaskManager) -> None:
        with pytest.raises(ToolCallError) as exc_info:
            call_tool(manager, "nope", {})
        assert exc_info.value.code == JsonRpcErrorCode.METHOD_NOT_FOUND

    @pytest.mark.parametrize("name, arguments", [
        ("read_project", {}),
        ("read_project", {"projectId": 5}),
        ("create_project", {"initialPrompt": "x", "tasks": []}),
        ("create_project", {"initialPrompt": "x", "tasks": [{"title": "t"}]}),
        ("list_tasks", {"state": "bogus"}),
        ("update_task", {"projectId": "proj-1", "taskId": "task-1", "status": "done"}),
        ("update_task", {"projectId": "proj-1", "taskId": "task-1", "status": "finished"}),
        ("update_project", {"projectId": "proj-1"}),
        ("generate_project_plan", {"prompt": "p", "provider": "acme", "model": "m"}),
        ("get_next_task", {"projectId": "proj-1", "extra": True}),
    ])
    def test_invalid_arguments(self, manager: TaskManager, name: str, arguments: dict) -> None:
        with pytest.raises(ToolCallError) as exc_info:
            call_tool(manager, name, arguments)
        assert exc_info.value.code == JsonRpcErrorCode.INVALID_PARAMS
        assert exc_info.value.message.startswith("Invalid arguments")

    def test_engine_validation_is_invalid_params(self, manager: TaskManager) -> None:
        _create(manager)
        with pytest.raises(ToolCallError) as exc_info:
            call_tool(manager, "update_task", {
                "projectId": "proj-1", "taskId": "task-1",
                "status": "in progress", "completedDetails": "too early",
            })
        assert exc_info.value.code == JsonRpcErrorCode.INVALID_PARAMS
        assert exc_info.value.data["code"] == "ERR_1002"


class TestEngineErrors:
    def test_not_found_is_tool_failure(self, manager: TaskManager) -> None:
        result = call_tool(manager, "read_project", {"projectId": "proj-9"})
        assert result["isError"] is True
        assert result["content"][0]["text"] == "Tool execution failed: Project proj-9 not found"
        assert result["error"] == {
            "code": "ERR_2001",
            "category": "not_found",
            "message": "Project proj-9 not found",
        }

    def test_state_transition_is_tool_failure(self, manager: TaskManager) -> None:
        _create(manager)
        result = call_tool(manager, "approve_task", {"projectId": "proj-1", "taskId": "task-1"})
        assert result["isError"] is True
        assert result["error"]["code"] == "ERR_3000"
        assert result["error"]["category"] == "state_transition"

    def test_missing_api_key(self, manager: TaskManager) -> None:
        result = call_tool(manager, "generate_project_plan", {
            "prompt": "p", "provider": "openai", "model": "gpt-4o-mini",
        })
        assert result["isError"] is True
        assert result["error"]["code"] == "ERR_2000"
        assert "API key" in result["content"][0]["text"]

    def test_unexpected_exception_is_classified(self, manager: TaskManager, monkeypatch) -> None:
        def boom(*args, **kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(manager, "list_projects", boom)
        result = call_tool(manager, "list_projects", {})
        assert result["isError"] is True
        assert result["error"]["code"] == "ERR_9999"


class TestToolFlow:
    def test_create_and_read(self, manager: TaskManager) -> None:
        created = _create(manager)
        assert created["projectId"] == "proj-1"
        assert created["totalTasks"] == 2
        assert created["tasks"][0] == {"id": "task-1", "title": "T1", "description": "D1"}

        project = _call(manager, "read_project", projectId="proj-1")
        assert project["projectPlan"] == "Build it"
        assert project["totalTasks"] == 2

        read = _call(manager, "read_task", taskId="task-2")
        assert read["projectId"] == "proj-1"
        assert read["task"]["title"] == "T2"

    def test_full_lifecycle(self, manager: TaskManager) -> None:
        _create(manager)
        nxt = _call(manager, "get_next_task", projectId="proj-1")
        assert nxt["status"] == "next_task"
        assert nxt["task"]["id"] == "task-1"

        for task_id in ("task-1", "task-2"):
            _call(manager, "update_task", projectId="proj-1", taskId=task_id, status="in progress")
            updated = _call(
                manager, "update_task",
                projectId="proj-1", taskId=task_id, status="done", completedDetails="ok",
            )
            assert updated["approvalRequired"] is True
            assert f"taskqueue approve proj-1 {task_id}" in updated["message"]
            approved = _call(manager, "approve_task", projectId="proj-1", taskId=task_id)
            assert approved["task"]["approved"] is True

        assert _call(manager, "get_next_task", projectId="proj-1")["status"] == "all_tasks_done"
        final = _call(manager, "finalize_project", projectId="proj-1")
        assert final["projectId"] == "proj-1"

        listed = _call(manager, "list_projects", state="completed")
        assert [p["projectId"] for p in listed["projects"]] == ["proj-1"]

        again = call_tool(manager, "finalize_project", {"projectId": "proj-1"})
        assert again["error"]["code"] == "ERR_3001"

    def test_auto_approve(self, manager: TaskManager) -> None:
        _create(manager, auto_approve=True)
        _call(manager, "update_task", projectId="proj-1", taskId="task-1", status="in progress")
        updated = _call(
            manager, "update_task",
            projectId="proj-1", taskId="task-1", status="done", completedDetails="ok",
        )
        assert updated["approvalRequired"] is False
        assert updated["task"]["approved"] is True

    def test_add_create_delete_tasks(self, manager: TaskManager) -> None:
        _create(manager)
        added = _call(
            manager, "add_tasks_to_project",
            projectId="proj-1", tasks=[{"title": "T3", "description": "D3", "toolRecommendations": "git"}],
        )
        assert added["newTasks"][0]["id"] == "task-3"
        created = _call(manager, "create_task", projectId="proj-1", title="T4", description="D4")
        assert created["task"]["id"] == "task-4"

        deleted = _call(manager, "delete_task", projectId="proj-1", taskId="task-3")
        assert deleted["status"] == "task_deleted"
        tasks = _call(manager, "list_tasks", projectId="proj-1")["tasks"]
        assert [t["id"] for t in tasks] == ["task-1", "task-2", "task-4"]

    def test_update_and_delete_project(self, manager: TaskManager) -> None:
        _create(manager)
        updated = _call(manager, "update_project", projectId="proj-1", projectPlan="Revised")
        assert updated["projectPlan"] == "Revised"
        assert _call(manager, "delete_project", projectId="proj-1")["status"] == "project_deleted"
        assert _call(manager, "list_projects")["projects"] == []

    def test_generate_project_plan(self, tmp_path: Path, monkeypatch) -> None:
        task_file = tmp_path / "tasks.json"
        manager = TaskManager(
            task_file,
            settings=Settings(task_file=task_file, env={"DEEPSEEK_API_KEY": "key"}),
        )

        def fake_generate(prompt, provider, model, attachments, *, api_key):
            assert provider == "deepseek"
            return planner.PlanOutput(tasks=[planner.PlannedTask(title="Plan task", description="Do it")])

        monkeypatch.setattr(planner, "generate_plan", fake_generate)
        created = _call(
            manager, "generate_project_plan",
            prompt="Make a CLI", provider="deepseek", model="deepseek-chat",
        )
        assert created["tasks"][0]["title"] == "Plan task"
        project = _call(manager, "read_project", projectId=created["projectId"])
        assert project["projectPlan"] == "Make a CLI"
