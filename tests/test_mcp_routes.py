"""
Tests for the HTTP transports: per-request JSON-RPC on /mcp, the SSE
message relay, discovery and health.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from genvr_mcp.main import create_app
from genvr_mcp.mcp.dispatcher import ToolDispatcher, get_dispatcher
from genvr_mcp.routes import mcp as mcp_routes
from genvr_mcp.services.genvr_client import GenVRClient
from genvr_mcp.services.task_poller import TaskPoller


@pytest.fixture
def dispatcher(mock_transport, fake_sleep):
    client = GenVRClient(transport=mock_transport)
    return ToolDispatcher(client=client, poller=TaskPoller(client, sleep=fake_sleep))


@pytest.fixture
def client(dispatcher):
    app = create_app()
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return TestClient(app)


def _module_maps():
    """Copies of the module-level dicts held by the MCP routes."""
    return {
        name: dict(value)
        for name, value in vars(mcp_routes).items()
        if isinstance(value, dict) and not name.startswith("__")
    }


def _rpc(method, params=None, req_id=1):
    message = {"jsonrpc": "2.0", "method": method, "id": req_id}
    if params is not None:
        message["params"] = params
    return message


class TestStreamableHttp:
    def test_initialize_issues_session(self, client):
        response = client.post("/mcp", json=_rpc("initialize", {"protocolVersion": "2024-11-05"}))

        assert response.status_code == 200
        assert response.headers["mcp-session-id"]
        result = response.json()["result"]
        assert result["serverInfo"] == {"name": "genvr-mcp-server", "version": "1.0.0"}
        assert result["capabilities"]["tools"] == {"listChanged": False}

    def test_existing_session_header_is_kept(self, client):
        response = client.post("/mcp", json=_rpc("ping"), headers={"mcp-session-id": "abc"})
        assert "mcp-session-id" not in response.headers
        assert response.json() == {"jsonrpc": "2.0", "result": {}, "id": 1}

    def test_sessionless_requests_leave_no_server_state(self, client):
        before = _module_maps()

        ids = {client.post("/mcp", json=_rpc("ping")).headers["mcp-session-id"] for _ in range(3)}

        assert len(ids) == 3
        assert _module_maps() == before

    def test_tools_list(self, client):
        response = client.post("/mcp", json=_rpc("tools/list"))
        names = [t["name"] for t in response.json()["result"]["tools"]]
        assert names == [
            "generate_imagegen_flux_dev",
            "generate_imagegen_sdxl",
            "generate_videogen_kling_v1_6",
            "generate_audiogen_musicgen",
        ]

    def test_tools_call_success(self, client, genvr_stub):
        genvr_stub.queue("/generate", {"data": {"id": "task-1"}})
        genvr_stub.queue_status("completed")
        genvr_stub.queue("/response", {"data": {"output": "https://cdn/a.png"}})

        response = client.post(
            "/mcp",
            json=_rpc("tools/call", {"name": "generate_imagegen_sdxl", "arguments": {"prompt": "p"}}),
        )

        result = response.json()["result"]
        assert result["structuredContent"] == {"data": {"output": "https://cdn/a.png"}}

    def test_tools_call_error_is_a_result(self, client):
        response = client.post("/mcp", json=_rpc("tools/call", {"name": "nope", "arguments": {}}))
        body = response.json()
        assert "error" not in body
        assert body["result"]["isError"] is True
        assert body["result"]["content"][0]["text"] == "Tool execution failed: Unknown tool: nope"

    def test_tools_call_without_name(self, client):
        response = client.post("/mcp", json=_rpc("tools/call", {"arguments": {}}))
        assert response.json()["error"]["code"] == -32602

    def test_notification_gets_202(self, client):
        response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert response.status_code == 202
        assert response.content == b""

    def test_unknown_method(self, client):
        body = client.post("/mcp", json=_rpc("sampling/createMessage")).json()
        assert body["error"]["code"] == -32601

    def test_parse_error(self, client):
        response = client.post("/mcp", content=b"{not json", headers={"content-type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700

    def test_wrong_jsonrpc_version(self, client):
        response = client.post("/mcp", json={"jsonrpc": "1.0", "method": "ping", "id": 3})
        assert response.status_code == 400
        assert response.json() == {"jsonrpc": "2.0", "error": {"code": -32600, "message": "Invalid Request"}, "id": 3}

    def test_batch(self, client):
        response = client.post(
            "/mcp",
            json=[_rpc("ping", req_id=1), {"jsonrpc": "2.0", "method": "notifications/x"}, _rpc("prompts/list", req_id=2)],
        )
        assert response.json() == [
            {"jsonrpc": "2.0", "result": {}, "id": 1},
            {"jsonrpc": "2.0", "result": {"prompts": []}, "id": 2},
        ]


class TestSse:
    def test_message_for_unknown_session(self, client):
        response = client.post("/sse/message?sessionId=missing", json=_rpc("ping"))
        assert response.status_code == 404

    def test_message_is_relayed_to_session_queue(self, client):
        queue = asyncio.Queue()
        mcp_routes._sse_sessions["s-1"] = queue
        try:
            response = client.post("/sse/message?sessionId=s-1", json=_rpc("tools/list", req_id=9))
            assert response.status_code == 202
            message = queue.get_nowait()
            assert message["id"] == 9
            assert len(message["result"]["tools"]) == 4
        finally:
            mcp_routes._sse_sessions.pop("s-1", None)

    def test_notification_queues_nothing(self, client):
        queue = asyncio.Queue()
        mcp_routes._sse_sessions["s-2"] = queue
        try:
            response = client.post(
                "/sse/message?sessionId=s-2", json={"jsonrpc": "2.0", "method": "notifications/initialized"}
            )
            assert response.status_code == 202
            assert queue.empty()
        finally:
            mcp_routes._sse_sessions.pop("s-2", None)

    @pytest.mark.asyncio
    async def test_event_stream(self):
        queue = asyncio.Queue()
        mcp_routes._sse_sessions["s-3"] = queue
        await queue.put({"jsonrpc": "2.0", "result": {}, "id": 1})

        async def connected():
            return False

        stream = mcp_routes.sse_event_stream("s-3", queue, connected, heartbeat=0.01)
        assert await stream.__anext__() == "event: endpoint\ndata: /sse/message?sessionId=s-3\n\n"
        assert await stream.__anext__() == f"event: message\ndata: {json.dumps({'jsonrpc': '2.0', 'result': {}, 'id': 1})}\n\n"
        assert await stream.__anext__() == ": heartbeat\n\n"
        await stream.aclose()
        assert "s-3" not in mcp_routes._sse_sessions

    @pytest.mark.asyncio
    async def test_event_stream_stops_on_disconnect(self):
        queue = asyncio.Queue()
        mcp_routes._sse_sessions["s-4"] = queue

        async def disconnected():
            return True

        events = [e async for e in mcp_routes.sse_event_stream("s-4", queue, disconnected, heartbeat=0.01)]
        assert len(events) == 1
        assert "s-4" not in mcp_routes._sse_sessions


def test_discovery(client):
    body = client.get("/.well-known/mcp.json").json()
    assert body["server"]["name"] == "genvr-mcp-server"
    assert body["endpoints"]["sse"].endswith("/sse")
    assert body["endpoints"]["rpc"].endswith("/mcp")


def test_health_reports_registry_state(client, dispatcher):
    before = client.get("/health").json()
    assert before["registry"] == {"built": False, "tools": 0, "unknown_categories": []}

    client.post("/mcp", json=_rpc("tools/list"))

    after = client.get("/healthz").json()
    assert after["ok"] is True
    assert after["registry"]["built"] is True
    assert after["registry"]["tools"] == 4


def test_lifespan_builds_registry():
    with TestClient(create_app()) as client:
        body = client.get("/health").json()
    assert body["registry"]["built"] is True
    assert body["registry"]["tools"] == 4
