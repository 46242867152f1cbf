"""Tests for the error taxonomy (errors.py)."""

from __future__ import annotations

import pytest

from taskqueue.errors import (
    CannotModifyApprovedTask,
    ErrorCategory,
    ErrorCode,
    FileSystemError,
    InvalidState,
    JsonRpcErrorCode,
    ProjectNotFound,
    ProviderError,
    TaskQueueError,
    ValidationError,
    category_for,
    classify_error,
    to_json_rpc_code,
)


class TestCategories:
    def test_every_code_has_a_category(self) -> None:
        for code in ErrorCode:
            assert isinstance(category_for(code), ErrorCategory)

    @pytest.mark.parametrize("code, category", [
        (ErrorCode.MISSING_PARAMETER, ErrorCategory.VALIDATION),
        (ErrorCode.INVALID_STATE, ErrorCategory.VALIDATION),
        (ErrorCode.TASK_NOT_FOUND, ErrorCategory.NOT_FOUND),
        (ErrorCode.TASKS_NOT_ALL_APPROVED, ErrorCategory.STATE_TRANSITION),
        (ErrorCode.READ_ONLY_FILE_SYSTEM, ErrorCategory.FILE_SYSTEM),
        (ErrorCode.CONFIGURATION_ERROR, ErrorCategory.EXTERNAL_PROVIDER),
        (ErrorCode.UNKNOWN, ErrorCategory.UNKNOWN),
    ])
    def test_category_for(self, code: ErrorCode, category: ErrorCategory) -> None:
        assert category_for(code) == category


class TestJsonRpcMapping:
    def test_validation_is_invalid_params(self) -> None:
        assert to_json_rpc_code(ErrorCode.INVALID_ARGUMENT) == JsonRpcErrorCode.INVALID_PARAMS
        assert to_json_rpc_code(ErrorCode.INVALID_STATE) == JsonRpcErrorCode.INVALID_PARAMS

    @pytest.mark.parametrize("code", [
        ErrorCode.PROJECT_NOT_FOUND,
        ErrorCode.TASK_NOT_DONE,
        ErrorCode.FILE_WRITE_ERROR,
        ErrorCode.LLM_GENERATION_ERROR,
    ])
    def test_others_are_server_errors(self, code: ErrorCode) -> None:
        assert to_json_rpc_code(code) == JsonRpcErrorCode.SERVER_ERROR

    def test_wire_codes(self) -> None:
        assert int(JsonRpcErrorCode.INVALID_PARAMS) == -32602
        assert int(JsonRpcErrorCode.METHOD_NOT_FOUND) == -32601


class TestExceptions:
    def test_default_codes(self) -> None:
        assert ValidationError("x").code == ErrorCode.INVALID_ARGUMENT
        assert ProjectNotFound("x").code == ErrorCode.PROJECT_NOT_FOUND
        assert InvalidState("x").code == ErrorCode.INVALID_STATE
        assert CannotModifyApprovedTask("x").code == ErrorCode.CANNOT_MODIFY_APPROVED_TASK
        assert FileSystemError("x").code == ErrorCode.FILE_READ_ERROR
        assert ProviderError("x").code == ErrorCode.LLM_GENERATION_ERROR

    def test_code_override_and_dict(self) -> None:
        err = FileSystemError("cannot write", ErrorCode.FILE_WRITE_ERROR, details={"path": "/tmp/x"})
        assert err.details == {"path": "/tmp/x"}
        assert err.to_dict() == {
            "code": "ERR_4001",
            "category": "file_system",
            "message": "cannot write",
        }
        assert str(err) == "[ERR_4001] cannot write"

    def test_classify_passthrough(self) -> None:
        err = ProjectNotFound("gone")
        assert classify_error(err) is err

    def test_classify_unknown(self) -> None:
        err = classify_error(RuntimeError("boom"))
        assert isinstance(err, TaskQueueError)
        assert err.code == ErrorCode.UNKNOWN
        assert err.category == ErrorCategory.UNKNOWN
        assert err.message == "boom"
        assert err.details == {"type": "RuntimeError"}
