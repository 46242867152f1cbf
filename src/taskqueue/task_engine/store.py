"""File-backed repository for the project collection.

Stores every project in a single JSON file (``tasks.json`` by default).  The
file lock is held only while a single read or a single write runs; nothing is
held across a caller's reload-mutate-save cycle, so two concurrent writers can
still overwrite each other (last writer wins).  Writes are atomic
(write-tmp-then-rename) so a reader never sees a half-written file.
"""

from __future__ import annotations

import errno
import json
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout
from loguru import logger

from ..constants import LOCK_SUFFIX, LOCK_TIMEOUT
from ..errors import ErrorCode, FileSystemError
from ..io_utils import _atomic_write_json
from .model import TaskManagerFile


# ---------------------------------------------------------------------------
# Low-level I/O
# ---------------------------------------------------------------------------

def _load_raw(path: Path) -> dict[str, Any]:
    """Load the raw collection from *path*, returning an empty one if missing."""
    if not path.exists():
        return {"projects": []}
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FileSystemError(
            f"Failed to read tasks file: {exc}",
            ErrorCode.FILE_READ_ERROR,
            details={"path": str(path)},
        ) from exc
    if not text.strip():
        return {"projects": []}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise FileSystemError(
            f"Failed to parse tasks file: {exc}",
            ErrorCode.FILE_PARSE_ERROR,
            details={"path": str(path)},
        ) from exc
    if not isinstance(data, dict) or not isinstance(data.get("projects", []), list):
        raise FileSystemError(
            "Failed to parse tasks file: expected an object with a 'projects' list",
            ErrorCode.FILE_PARSE_ERROR,
            details={"path": str(path)},
        )
    return data


def _save_raw(path: Path, data: dict[str, Any]) -> None:
    try:
        _atomic_write_json(path, data)
    except OSError as exc:
        if exc.errno == errno.EROFS:
            raise FileSystemError(
                "Cannot save tasks: read-only file system",
                ErrorCode.READ_ONLY_FILE_SYSTEM,
                details={"path": str(path)},
            ) from exc
        raise FileSystemError(
            f"Failed to save tasks file: {exc}",
            ErrorCode.FILE_WRITE_ERROR,
            details={"path": str(path)},
        ) from exc


# ---------------------------------------------------------------------------
# ProjectStore
# ---------------------------------------------------------------------------

class ProjectStore:
    """Load/save repository keyed by a single file path.

    Parameters
    ----------
    path:
        Location of the JSON collection file.
    """

    def __init__(self, path: Path, lock_timeout: float = LOCK_TIMEOUT) -> None:
        self.path = Path(path)
        self._lock = FileLock(str(self.path) + LOCK_SUFFIX, timeout=lock_timeout)

    def _locked(self, action: str) -> FileLock:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._lock.acquire()
        except Timeout as exc:
            code = ErrorCode.FILE_READ_ERROR if action == "read" else ErrorCode.FILE_WRITE_ERROR
            raise FileSystemError(
                f"Timed out waiting for lock on {self.path.name}",
                code,
                details={"lock": self._lock.lock_file},
            ) from exc
        except OSError as exc:
            code = ErrorCode.FILE_READ_ERROR if action == "read" else ErrorCode.FILE_WRITE_ERROR
            if exc.errno == errno.EROFS and action == "write":
                code = ErrorCode.READ_ONLY_FILE_SYSTEM
            raise FileSystemError(f"Cannot lock {self.path.name}: {exc}", code) from exc
        return self._lock

    def load(self) -> TaskManagerFile:
        lock = self._locked("read")
        try:
            raw = _load_raw(self.path)
        finally:
            lock.release()
        logger.debug("Loaded {} projects from {}", len(raw.get("projects", [])), self.path)
        return TaskManagerFile.from_dict(raw)

    def save(self, data: TaskManagerFile) -> None:
        lock = self._locked("write")
        try:
            _save_raw(self.path, data.to_dict())
        finally:
            lock.release()
        logger.debug("Saved {} projects to {}", len(data.projects), self.path)

    def read_attachment(self, filename: str, base_dir: Path | None = None) -> str:
        """Read an attachment file relative to *base_dir* (default: cwd)."""
        path = (base_dir or Path.cwd()) / filename
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise FileSystemError(
                f"Attachment file not found: {filename}",
                ErrorCode.FILE_READ_ERROR,
            ) from exc
        except OSError as exc:
            raise FileSystemError(
                f"Failed to read attachment file: {filename}",
                ErrorCode.FILE_READ_ERROR,
            ) from exc
