"""Tests for the file-backed project store (task_engine/store.py)."""

from __future__ import annotations

import errno
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from taskqueue.errors import ErrorCode, FileSystemError
from taskqueue.task_engine.model import Project, Task, TaskManagerFile
from taskqueue.task_engine.store import ProjectStore


@pytest.fixture
def store(tmp_path: Path) -> ProjectStore:
    return ProjectStore(tmp_path / "data" / "tasks.json")


def _collection() -> TaskManagerFile:
    return TaskManagerFile(projects=[
        Project(
            project_id="proj-1",
            initial_prompt="Prompt",
            tasks=[Task(id="task-1", title="T", description="D")],
        ),
    ])


class TestProjectStore:
    def test_missing_file_is_empty(self, store: ProjectStore) -> None:
        assert store.load().projects == []
        assert not store.path.exists()

    def test_blank_file_is_empty(self, store: ProjectStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("  \n")
        assert store.load().projects == []

    def test_save_and_load(self, store: ProjectStore) -> None:
        store.save(_collection())
        loaded = store.load()
        assert loaded == _collection()
        raw = json.loads(store.path.read_text())
        assert raw["projects"][0]["projectId"] == "proj-1"

    def test_save_leaves_no_temp_file(self, store: ProjectStore) -> None:
        store.save(_collection())
        leftovers = [p.name for p in store.path.parent.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []

    def test_invalid_json_is_parse_error(self, store: ProjectStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        with pytest.raises(FileSystemError) as exc_info:
            store.load()
        assert exc_info.value.code == ErrorCode.FILE_PARSE_ERROR

    def test_wrong_shape_is_parse_error(self, store: ProjectStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"projects": {"not": "a list"}}))
        with pytest.raises(FileSystemError) as exc_info:
            store.load()
        assert exc_info.value.code == ErrorCode.FILE_PARSE_ERROR

    def test_unknown_stored_status_is_not_rewritten(self, store: ProjectStore) -> None:
        store.path.parent.mkdir(parents=True)
        raw = {"projects": [{
            "projectId": "proj-1",
            "initialPrompt": "P",
            "tasks": [{"id": "task-1", "title": "T", "description": "D", "status": "Done", "approved": True}],
        }]}
        store.path.write_text(json.dumps(raw))
        with pytest.raises(FileSystemError) as exc_info:
            store.load()
        assert exc_info.value.code == ErrorCode.FILE_PARSE_ERROR
        assert json.loads(store.path.read_text()) == raw

    def test_read_failure(self, store: ProjectStore) -> None:
        store.save(_collection())
        with patch.object(Path, "read_text", side_effect=PermissionError("denied")):
            with pytest.raises(FileSystemError) as exc_info:
                store.load()
        assert exc_info.value.code == ErrorCode.FILE_READ_ERROR

    def test_write_failure(self, store: ProjectStore) -> None:
        with patch("taskqueue.task_engine.store._atomic_write_json", side_effect=OSError("disk full")):
            with pytest.raises(FileSystemError) as exc_info:
                store.save(_collection())
        assert exc_info.value.code == ErrorCode.FILE_WRITE_ERROR

    def test_read_only_file_system(self, store: ProjectStore) -> None:
        erofs = OSError(errno.EROFS, "Read-only file system")
        with patch("taskqueue.task_engine.store._atomic_write_json", side_effect=erofs):
            with pytest.raises(FileSystemError) as exc_info:
                store.save(_collection())
        assert exc_info.value.code == ErrorCode.READ_ONLY_FILE_SYSTEM

    def test_lock_released_between_operations(self, store: ProjectStore) -> None:
        store.save(_collection())
        store.load()
        other = ProjectStore(store.path, lock_timeout=0.1)
        assert other.load().projects[0].project_id == "proj-1"

    def test_read_attachment(self, store: ProjectStore, tmp_path: Path) -> None:
        (tmp_path / "notes.md").write_text("hello")
        assert store.read_attachment("notes.md", base_dir=tmp_path) == "hello"
        with pytest.raises(FileSystemError) as exc_info:
            store.read_attachment("missing.md", base_dir=tmp_path)
        assert exc_info.value.code == ErrorCode.FILE_READ_ERROR
