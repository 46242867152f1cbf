"""FastAPI application serving the tool catalogue over JSON-RPC 2.0."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger

from .. import __version__
from ..config import Settings, load_settings
from ..errors import JsonRpcErrorCode
from ..task_engine.engine import TaskManager
from .tools import ToolCallError, call_tool, list_tools

JSONRPC_VERSION = "2.0"


def _rpc_error(request_id: Any, code: JsonRpcErrorCode, message: str, data: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": int(code), "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def _rpc_result(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def handle_rpc(manager: TaskManager, message: Any) -> Optional[dict[str, Any]]:
    """Dispatch one JSON-RPC request object.

    Returns the response object, or ``None`` for notifications (no ``id``).
    """
    if (
        not isinstance(message, dict)
        or message.get("jsonrpc") != JSONRPC_VERSION
        or not isinstance(message.get("method"), str)
    ):
        request_id = message.get("id") if isinstance(message, dict) else None
        return _rpc_error(request_id, JsonRpcErrorCode.INVALID_REQUEST, "Invalid Request")

    request_id = message.get("id")
    is_notification = "id" not in message
    method = message["method"]
    params = message.get("params") or {}
    if not isinstance(params, dict):
        return _rpc_error(request_id, JsonRpcErrorCode.INVALID_PARAMS, "params must be an object")

    if method == "tools/list":
        response = _rpc_result(request_id, {"tools": list_tools()})
    elif method == "tools/call":
        name = params.get("name")
        arguments = params.get("arguments")
        if not isinstance(name, str) or (arguments is not None and not isinstance(arguments, dict)):
            response = _rpc_error(
                request_id,
                JsonRpcErrorCode.INVALID_PARAMS,
                "tools/call requires a string 'name' and an object 'arguments'",
            )
        else:
            try:
                response = _rpc_result(request_id, call_tool(manager, name, arguments))
            except ToolCallError as exc:
                response = _rpc_error(request_id, exc.code, exc.message, exc.data)
    else:
        response = _rpc_error(request_id, JsonRpcErrorCode.METHOD_NOT_FOUND, f"Method not found: {method}")

    return None if is_notification else response


def create_app(
    task_file: Optional[Path] = None,
    settings: Optional[Settings] = None,
    enable_cors: bool = False,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        task_file: Overrides the task file from *settings*.
        settings: Runtime settings (defaults to :func:`load_settings`).
        enable_cors: Whether to allow cross-origin requests.

    Returns:
        Configured FastAPI app; the manager is available as ``app.state.manager``.
    """
    settings = settings or load_settings()
    if task_file is not None:
        settings = replace(settings, task_file=Path(task_file))

    app = FastAPI(
        title="taskqueue",
        description="Task queue with human approval gates, exposed as JSON-RPC tools",
        version=__version__,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.manager = TaskManager.from_settings(settings)
    logger.info("Serving task file {}", settings.task_file)

    @app.get("/")
    async def root():
        return {"name": "taskqueue", "version": __version__, "status": "running"}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/tools")
    async def get_tools():
        return {"tools": list_tools()}

    @app.post("/rpc")
    async def rpc(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse(_rpc_error(None, JsonRpcErrorCode.PARSE_ERROR, "Parse error"))

        manager = app.state.manager
        if isinstance(body, list):
            if not body:
                return JSONResponse(_rpc_error(None, JsonRpcErrorCode.INVALID_REQUEST, "Invalid Request"))
            responses = [r for r in (handle_rpc(manager, m) for m in body) if r is not None]
            return JSONResponse(responses) if responses else Response(status_code=204)

        response = handle_rpc(manager, body)
        if response is None:
            return Response(status_code=204)
        return JSONResponse(response)

    return app
