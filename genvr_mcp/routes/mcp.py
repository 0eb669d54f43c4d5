"""
MCP Remote Server endpoints

Endpoints:
- GET /.well-known/mcp.json - MCP discovery
- GET /sse - SSE stream; announces the message endpoint for the session
- POST /sse/message?sessionId= - JSON-RPC message for an open SSE session
- POST /mcp - per-request JSON-RPC (streamable HTTP)
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from ..mcp.dispatcher import ToolDispatcher, get_dispatcher
from ..mcp.protocol import INVALID_REQUEST, PARSE_ERROR, PROTOCOL_VERSION, error_response, handle_jsonrpc, server_info

router = APIRouter(tags=["MCP Remote Server"])

logger = logging.getLogger("genvr.mcp.remote")

HEARTBEAT_SECONDS = 30.0
MESSAGE_PATH = "/sse/message"

# Open SSE streams, keyed by session id
_sse_sessions: Dict[str, asyncio.Queue] = {}


def _sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


async def sse_event_stream(
    session_id: str,
    queue: asyncio.Queue,
    is_disconnected: Callable[[], Awaitable[bool]],
    heartbeat: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    """Endpoint announcement, then queued responses and heartbeat comments."""
    try:
        yield _sse("endpoint", f"{MESSAGE_PATH}?sessionId={session_id}")
        while True:
            try:
                message = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                if await is_disconnected():
                    break
                yield ": heartbeat\n\n"
                continue
            yield _sse("message", json.dumps(message))
    finally:
        _sse_sessions.pop(session_id, None)
        logger.info("SSE session closed: %s", session_id)


@router.get("/.well-known/mcp.json")
async def mcp_discovery(request: Request):
    """MCP server discovery endpoint."""
    base_url = str(request.base_url).rstrip("/")
    return {
        "mcp_version": PROTOCOL_VERSION,
        "server": server_info(),
        "capabilities": {"tools": True, "prompts": False, "resources": False},
        "endpoints": {
            "sse": f"{base_url}/sse",
            "messages": f"{base_url}{MESSAGE_PATH}",
            "rpc": f"{base_url}/mcp",
        },
    }


@router.get("/sse")
async def mcp_sse_endpoint(request: Request):
    session_id = str(uuid.uuid4())
    queue: asyncio.Queue = asyncio.Queue()
    _sse_sessions[session_id] = queue
    logger.info("SSE session opened: %s", session_id)

    return StreamingResponse(
        sse_event_stream(session_id, queue, request.is_disconnected),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


async def _relay(queue: asyncio.Queue, message: Any, dispatcher: ToolDispatcher) -> None:
    response = await handle_jsonrpc(message, dispatcher)
    if response is not None:
        await queue.put(response)


@router.post(MESSAGE_PATH)
async def mcp_sse_message(
    request: Request,
    background_tasks: BackgroundTasks,
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    dispatcher: ToolDispatcher = Depends(get_dispatcher),
):
    queue = _sse_sessions.get(session_id or "")
    if queue is None:
        logger.warning("Message for unknown SSE session: %s", session_id)
        return JSONResponse(status_code=404, content={"error": f"No transport found for sessionId {session_id}"})

    try:
        message = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content=error_response(None, PARSE_ERROR, "Parse error"))

    # Tool calls can poll for minutes; the answer goes out on the stream
    background_tasks.add_task(_relay, queue, message, dispatcher)
    return Response(status_code=202, content="Accepted")


@router.post("/mcp")
async def mcp_rpc_endpoint(request: Request, dispatcher: ToolDispatcher = Depends(get_dispatcher)):
    """JSON-RPC over plain HTTP. Each request gets its answer in the response body."""
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content=error_response(None, PARSE_ERROR, "Parse error"))

    response_headers = {}
    if not request.headers.get("mcp-session-id"):
        # No session state is kept; the id only satisfies clients that expect one
        response_headers["mcp-session-id"] = str(uuid.uuid4())

    if isinstance(body, list):
        if not body:
            return JSONResponse(
                status_code=400,
                content=error_response(None, INVALID_REQUEST, "Invalid Request"),
                headers=response_headers,
            )
        responses = [r for r in [await handle_jsonrpc(m, dispatcher) for m in body] if r is not None]
        if not responses:
            return Response(status_code=202, headers=response_headers)
        return JSONResponse(content=responses, headers=response_headers)

    response = await handle_jsonrpc(body, dispatcher)
    if response is None:
        # Notifications get no body
        return Response(status_code=202, headers=response_headers)
    if response.get("error", {}).get("code") == INVALID_REQUEST:
        return JSONResponse(status_code=400, content=response, headers=response_headers)
    return JSONResponse(content=response, headers=response_headers)
