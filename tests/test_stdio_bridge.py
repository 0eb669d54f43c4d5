import io
import json

import pytest

from genvr_mcp.mcp.dispatcher import ToolDispatcher
from genvr_mcp.services.genvr_client import GenVRClient
from genvr_mcp.services.task_poller import TaskPoller
from genvr_mcp.stdio_bridge import StdioBridge


@pytest.fixture
def dispatcher(mock_transport, fake_sleep):
    client = GenVRClient(transport=mock_transport)
    return ToolDispatcher(client=client, poller=TaskPoller(client, sleep=fake_sleep))


def _lines(*messages):
    return "".join((m if isinstance(m, str) else json.dumps(m)) + "\n" for m in messages)


@pytest.mark.asyncio
async def test_handle_line_parse_error(dispatcher):
    bridge = StdioBridge(dispatcher, stdin=io.StringIO(), stdout=io.StringIO())
    response = await bridge.handle_line("{oops")
    assert response["error"]["code"] == -32700
    assert response["id"] is None


@pytest.mark.asyncio
async def test_blank_line_is_ignored(dispatcher):
    bridge = StdioBridge(dispatcher, stdin=io.StringIO(), stdout=io.StringIO())
    assert await bridge.handle_line("   \n") is None


@pytest.mark.asyncio
async def test_serve_until_eof(dispatcher, genvr_stub):
    genvr_stub.queue("/generate", {"data": {"id": "task-1"}})
    genvr_stub.queue_status("completed")
    genvr_stub.queue("/response", {"data": {"output": "ok"}})

    stdin = io.StringIO(
        _lines(
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}},
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "id": 2, "method": "tools/list"},
            {
                "jsonrpc": "2.0",
                "id": 3,
                "method": "tools/call",
                "params": {"name": "generate_imagegen_sdxl", "arguments": {"prompt": "p"}},
            },
        )
    )
    stdout = io.StringIO()

    await StdioBridge(dispatcher, stdin=stdin, stdout=stdout).serve()

    responses = {r["id"]: r for r in map(json.loads, stdout.getvalue().splitlines())}
    assert set(responses) == {1, 2, 3}
    assert responses[1]["result"]["serverInfo"]["name"] == "genvr-mcp-server"
    assert len(responses[2]["result"]["tools"]) == 4
    assert responses[3]["result"]["structuredContent"] == {"data": {"output": "ok"}}
