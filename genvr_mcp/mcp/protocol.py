"""
MCP JSON-RPC core shared by the HTTP/SSE routes and the stdio bridge.

``handle_jsonrpc`` takes one decoded message and returns the response
object, or ``None`` for notifications.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..config import get_settings
from .dispatcher import ToolDispatcher

logger = logging.getLogger("genvr.mcp")

PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


def server_info() -> Dict[str, str]:
    settings = get_settings()
    return {"name": settings.mcp_server_name, "version": settings.mcp_server_version}


def error_response(req_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": req_id}


def result_response(req_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "result": result, "id": req_id}


async def handle_jsonrpc(message: Any, dispatcher: ToolDispatcher) -> Optional[Dict[str, Any]]:
    if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
        req_id = message.get("id") if isinstance(message, dict) else None
        return error_response(req_id, INVALID_REQUEST, "Invalid Request")

    method = message.get("method")
    req_id = message.get("id")
    params = message.get("params")
    if params is None:
        params = {}
    is_notification = "id" not in message

    if not isinstance(method, str):
        return error_response(req_id, INVALID_REQUEST, "Invalid Request")

    logger.info("MCP request: method=%s", method)

    if method.startswith("notifications/"):
        logger.debug("Notification received: %s", method)
        return None

    if not isinstance(params, dict):
        return error_response(req_id, INVALID_PARAMS, "params must be an object")

    if method == "initialize":
        result: Dict[str, Any] = {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": server_info(),
            "capabilities": {"tools": {"listChanged": False}},
        }
    elif method == "tools/list":
        result = {"tools": await dispatcher.list_tools()}
    elif method == "tools/call":
        name = params.get("name")
        if not isinstance(name, str) or not name:
            return error_response(req_id, INVALID_PARAMS, "Missing tool name")
        result = await dispatcher.call_tool(name, params.get("arguments"))
    elif method == "ping":
        result = {}
    elif method == "prompts/list":
        result = {"prompts": []}
    elif method == "resources/list":
        result = {"resources": []}
    else:
        if is_notification:
            return None
        return error_response(req_id, METHOD_NOT_FOUND, f"Method '{method}' not found")

    if is_notification:
        return None
    return result_response(req_id, result)
