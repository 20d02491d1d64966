"""JSON-RPC 2.0 dispatcher for the MCP endpoint.

Supported methods: ``initialize``, ``notifications/initialized``,
``tools/list``, ``tools/call`` and ``ping``. The ``tools/*`` methods are
refused with ``-32002`` until the caller has run ``initialize``.

Initialization is tracked per client session, keyed by the
``Mcp-Session-Id`` header. Requests without that header share one default
key, so a client that never sends a session id sees a single
process-wide flag. At most ``max_sessions`` keys are remembered; the least
recently used one is dropped first and that client must initialize again.

Protocol failures are always answered as JSON-RPC error objects; nothing
here raises to the transport.
"""

from __future__ import annotations

import asyncio
import json
from collections import OrderedDict
from typing import Any

from mcp.types import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    CallToolResult,
    ErrorData,
    Implementation,
    InitializeResult,
    ListToolsResult,
    ServerCapabilities,
    TextContent,
    ToolsCapability,
)
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from indian_store_mcp.audit import get_logger
from indian_store_mcp.tools import ToolCatalog

logger = get_logger("dispatcher")

SERVER_NOT_INITIALIZED = -32002
PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "indian-store-mcp-server"
SERVER_VERSION = "1.0.0"

DEFAULT_SESSION = ""
MAX_INITIALIZED_SESSIONS = 10_000

Response = dict[str, Any]


class RpcRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    jsonrpc: str = "2.0"
    id: str | int | None = None
    method: str
    params: dict[str, Any] | None = None


class ClientInfo(BaseModel):
    name: str = ""
    version: str = ""


class InitializeParams(BaseModel):
    model_config = ConfigDict(extra="allow")

    protocolVersion: str = ""
    capabilities: dict[str, Any] = Field(default_factory=dict)
    clientInfo: ClientInfo = Field(default_factory=ClientInfo)


class CallToolParams(BaseModel):
    name: str
    arguments: dict[str, Any] | None = None


def result_response(request_id: str | int | None, result: BaseModel | dict) -> Response:
    if isinstance(result, BaseModel):
        result = result.model_dump(by_alias=True, exclude_none=True, mode="json")
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error_response(
    request_id: str | int | None,
    code: int,
    message: str,
    data: Any = None,
) -> Response:
    error = ErrorData(code=code, message=message, data=data)
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": error.model_dump(exclude_none=True),
    }


def parse_error_response() -> Response:
    return error_response(None, PARSE_ERROR, "Parse error: Invalid JSON")


class McpDispatcher:
    def __init__(
        self,
        catalog: ToolCatalog,
        max_sessions: int = MAX_INITIALIZED_SESSIONS,
    ) -> None:
        self.catalog = catalog
        self.max_sessions = max(1, max_sessions)
        self._initialized: OrderedDict[str, None] = OrderedDict()
        self._lock = asyncio.Lock()

    async def handle_body(self, body: bytes, session_key: str | None = None) -> Response | None:
        """Decode a transport body and dispatch it."""
        try:
            message = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.info("rpc_parse_error", error=str(exc))
            return parse_error_response()
        return await self.handle(message, session_key)

    async def handle(self, message: Any, session_key: str | None = None) -> Response | None:
        """Dispatch one decoded JSON-RPC message.

        Returns None for notifications, which must not be answered.
        """
        try:
            request = RpcRequest.model_validate(message)
        except ValidationError as exc:
            request_id = message.get("id") if isinstance(message, dict) else None
            if not isinstance(request_id, (str, int)):
                request_id = None
            return error_response(request_id, INVALID_REQUEST, "Invalid Request", str(exc))

        key = session_key or DEFAULT_SESSION
        logger.info("rpc_request", method=request.method, id=request.id)

        if request.method.startswith("notifications/"):
            if request.method == "notifications/initialized":
                logger.info("client_initialized_notification")
            return None

        if request.method == "initialize":
            return await self._initialize(request, key)
        if request.method == "ping":
            return result_response(request.id, {})
        if request.method == "tools/list":
            if not await self.is_initialized(key):
                return _not_initialized(request.id)
            return result_response(
                request.id, ListToolsResult(tools=self.catalog.list_tools())
            )
        if request.method == "tools/call":
            if not await self.is_initialized(key):
                return _not_initialized(request.id)
            return await self._call_tool(request)

        return error_response(request.id, METHOD_NOT_FOUND, "Method not found", request.method)

    async def is_initialized(self, session_key: str | None = None) -> bool:
        key = session_key or DEFAULT_SESSION
        async with self._lock:
            if key not in self._initialized:
                return False
            self._initialized.move_to_end(key)
            return True

    async def _initialize(self, request: RpcRequest, key: str) -> Response:
        try:
            params = InitializeParams.model_validate(request.params or {})
        except ValidationError as exc:
            return error_response(request.id, INVALID_PARAMS, "Invalid params", str(exc))

        logger.info(
            "initialize",
            client_name=params.clientInfo.name,
            client_version=params.clientInfo.version,
            protocol_version=params.protocolVersion,
        )

        async with self._lock:
            self._initialized[key] = None
            self._initialized.move_to_end(key)
            while len(self._initialized) > self.max_sessions:
                evicted, _ = self._initialized.popitem(last=False)
                logger.info("session_evicted", session=evicted)

        return result_response(
            request.id,
            InitializeResult(
                protocolVersion=PROTOCOL_VERSION,
                capabilities=ServerCapabilities(tools=ToolsCapability(listChanged=False)),
                serverInfo=Implementation(name=SERVER_NAME, version=SERVER_VERSION),
            ),
        )

    async def _call_tool(self, request: RpcRequest) -> Response:
        try:
            params = CallToolParams.model_validate(request.params or {})
        except ValidationError as exc:
            return error_response(request.id, INVALID_PARAMS, "Invalid params", str(exc))

        entry = self.catalog.get(params.name)
        if entry is None:
            return error_response(request.id, METHOD_NOT_FOUND, "Unknown tool", params.name)

        logger.info("tool_call", tool=params.name, arguments=params.arguments)
        try:
            text = await entry.handler(params.arguments or {})
        except Exception as exc:
            logger.exception("tool_failed", tool=params.name)
            result = CallToolResult(
                content=[TextContent(type="text", text=f"Error: {exc}")],
                isError=True,
            )
        else:
            result = CallToolResult(content=[TextContent(type="text", text=text)])
        return result_response(request.id, result)


def _not_initialized(request_id: str | int | None) -> Response:
    return error_response(request_id, SERVER_NOT_INITIALIZED, "Server not initialized")
