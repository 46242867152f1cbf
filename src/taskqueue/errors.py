"""Error taxonomy for the task queue.

Two code spaces live here and are kept apart:

* :class:`ErrorCode`: stable business codes (``ERR_xxxx``) raised by the
  engine, the repository and the plan generator.
* :class:`JsonRpcErrorCode`: wire codes used by the JSON-RPC binding.

:func:`to_json_rpc_code` is the only bridge between them.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Business error codes, grouped by the leading digit."""

    # Protocol / argument shape (ERR_1xxx)
    MISSING_PARAMETER = "ERR_1000"
    INVALID_ARGUMENT = "ERR_1002"

    # Configuration / resource not found (ERR_2xxx)
    CONFIGURATION_ERROR = "ERR_2000"
    PROJECT_NOT_FOUND = "ERR_2001"
    TASK_NOT_FOUND = "ERR_2002"
    INVALID_STATE = "ERR_2003"
    INVALID_PROVIDER = "ERR_2004"
    INVALID_MODEL = "ERR_2005"

    # Business rules (ERR_3xxx)
    TASK_NOT_DONE = "ERR_3000"
    PROJECT_ALREADY_COMPLETED = "ERR_3001"
    INVALID_STATUS_TRANSITION = "ERR_3002"
    TASKS_NOT_ALL_DONE = "ERR_3003"
    TASKS_NOT_ALL_APPROVED = "ERR_3004"
    CANNOT_MODIFY_APPROVED_TASK = "ERR_3005"
    TASK_ALREADY_APPROVED = "ERR_3006"

    # File system (ERR_4xxx)
    FILE_READ_ERROR = "ERR_4000"
    FILE_WRITE_ERROR = "ERR_4001"
    FILE_PARSE_ERROR = "ERR_4002"
    READ_ONLY_FILE_SYSTEM = "ERR_4003"

    # LLM provider (ERR_5xxx)
    LLM_GENERATION_ERROR = "ERR_5000"
    LLM_CONFIGURATION_ERROR = "ERR_5001"

    UNKNOWN = "ERR_9999"


class ErrorCategory(str, Enum):
    """Coarse grouping that tells a caller whether to retry or fix the request."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    STATE_TRANSITION = "state_transition"
    FILE_SYSTEM = "file_system"
    EXTERNAL_PROVIDER = "external_provider"
    UNKNOWN = "unknown"


class JsonRpcErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes used on the wire."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    # -32000 to -32099 is reserved for implementation-defined server errors
    SERVER_ERROR = -32000


_CATEGORY_BY_CODE: dict[ErrorCode, ErrorCategory] = {
    ErrorCode.MISSING_PARAMETER: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_ARGUMENT: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_STATE: ErrorCategory.VALIDATION,
    ErrorCode.PROJECT_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.TASK_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.TASK_NOT_DONE: ErrorCategory.STATE_TRANSITION,
    ErrorCode.PROJECT_ALREADY_COMPLETED: ErrorCategory.STATE_TRANSITION,
    ErrorCode.INVALID_STATUS_TRANSITION: ErrorCategory.STATE_TRANSITION,
    ErrorCode.TASKS_NOT_ALL_DONE: ErrorCategory.STATE_TRANSITION,
    ErrorCode.TASKS_NOT_ALL_APPROVED: ErrorCategory.STATE_TRANSITION,
    ErrorCode.CANNOT_MODIFY_APPROVED_TASK: ErrorCategory.STATE_TRANSITION,
    ErrorCode.TASK_ALREADY_APPROVED: ErrorCategory.STATE_TRANSITION,
    ErrorCode.FILE_READ_ERROR: ErrorCategory.FILE_SYSTEM,
    ErrorCode.FILE_WRITE_ERROR: ErrorCategory.FILE_SYSTEM,
    ErrorCode.FILE_PARSE_ERROR: ErrorCategory.FILE_SYSTEM,
    ErrorCode.READ_ONLY_FILE_SYSTEM: ErrorCategory.FILE_SYSTEM,
    ErrorCode.CONFIGURATION_ERROR: ErrorCategory.EXTERNAL_PROVIDER,
    ErrorCode.INVALID_PROVIDER: ErrorCategory.EXTERNAL_PROVIDER,
    ErrorCode.INVALID_MODEL: ErrorCategory.EXTERNAL_PROVIDER,
    ErrorCode.LLM_GENERATION_ERROR: ErrorCategory.EXTERNAL_PROVIDER,
    ErrorCode.LLM_CONFIGURATION_ERROR: ErrorCategory.EXTERNAL_PROVIDER,
    ErrorCode.UNKNOWN: ErrorCategory.UNKNOWN,
}


def category_for(code: ErrorCode) -> ErrorCategory:
    return _CATEGORY_BY_CODE.get(code, ErrorCategory.UNKNOWN)


def to_json_rpc_code(code: ErrorCode) -> JsonRpcErrorCode:
    """Map a business code onto the JSON-RPC code a client will see.

    Only argument-shape problems become protocol errors; everything else is a
    tool execution failure reported inside a successful JSON-RPC response, so
    it carries the generic server error code.
    """
    if category_for(code) == ErrorCategory.VALIDATION:
        return JsonRpcErrorCode.INVALID_PARAMS
    return JsonRpcErrorCode.SERVER_ERROR


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class TaskQueueError(Exception):
    """Base class for every classified failure."""

    default_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details

    @property
    def category(self) -> ErrorCategory:
        return category_for(self.code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "category": self.category.value,
            "message": self.message,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class ValidationError(TaskQueueError):
    """Request shape is wrong (missing or mistyped parameter)."""

    default_code = ErrorCode.INVALID_ARGUMENT


class ProjectNotFound(TaskQueueError):
    default_code = ErrorCode.PROJECT_NOT_FOUND


class TaskNotFound(TaskQueueError):
    default_code = ErrorCode.TASK_NOT_FOUND


class InvalidState(TaskQueueError):
    default_code = ErrorCode.INVALID_STATE


class StateTransitionError(TaskQueueError):
    """A lifecycle rule refused the operation."""


class InvalidStatusTransition(StateTransitionError):
    default_code = ErrorCode.INVALID_STATUS_TRANSITION


class TaskNotDone(StateTransitionError):
    default_code = ErrorCode.TASK_NOT_DONE


class TaskAlreadyApproved(StateTransitionError):
    default_code = ErrorCode.TASK_ALREADY_APPROVED


class CannotModifyApprovedTask(StateTransitionError):
    default_code = ErrorCode.CANNOT_MODIFY_APPROVED_TASK


class ProjectAlreadyCompleted(StateTransitionError):
    default_code = ErrorCode.PROJECT_ALREADY_COMPLETED


class TasksNotAllDone(StateTransitionError):
    default_code = ErrorCode.TASKS_NOT_ALL_DONE


class TasksNotAllApproved(StateTransitionError):
    default_code = ErrorCode.TASKS_NOT_ALL_APPROVED


class FileSystemError(TaskQueueError):
    """Repository read/parse/write failure."""

    default_code = ErrorCode.FILE_READ_ERROR


class ProviderError(TaskQueueError):
    """Failure talking to the plan-generation provider."""

    default_code = ErrorCode.LLM_GENERATION_ERROR


def classify_error(exc: BaseException) -> TaskQueueError:
    """Return *exc* as a :class:`TaskQueueError`, wrapping unknown failures."""
    if isinstance(exc, TaskQueueError):
        return exc
    message = str(exc) or exc.__class__.__name__
    return TaskQueueError(message, ErrorCode.UNKNOWN, details={"type": exc.__class__.__name__})
