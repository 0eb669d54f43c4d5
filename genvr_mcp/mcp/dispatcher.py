from __future__ import annotations

import json
import logging
import time
from functools import lru_cache
from typing import Any, Dict, List, Optional

from ..config import Settings, get_settings
from ..services.genvr_client import Credentials, GenVRClient
from ..services.task_poller import TaskPoller
from ..utils.errors import UnknownTool, tool_error_text
from .tool_registry import Handler, ToolDefinition, ToolRegistry

logger = logging.getLogger("genvr.mcp")


class ToolDispatcher:
    """The list-tools / call-tool boundary shared by every transport.

    ``call_tool`` never raises: any failure inside a call comes back as an
    ``isError`` tool result.
    """

    def __init__(
        self,
        registry: Optional[ToolRegistry] = None,
        client: Optional[GenVRClient] = None,
        poller: Optional[TaskPoller] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.registry = registry if registry is not None else ToolRegistry(bind=self.bind)
        self.client = client if client is not None else GenVRClient()
        self.poller = poller if poller is not None else TaskPoller(self.client)

    def bind(self, tool: ToolDefinition) -> Handler:
        """Call handler for one registered tool."""

        async def handler(arguments: Dict[str, Any]) -> Any:
            return await self._execute(tool.name, arguments, tool)

        handler.__name__ = f"handle_{tool.name}"
        return handler

    async def list_tools(self) -> List[Dict[str, Any]]:
        tools = await self.registry.ensure_built()
        return [tool.to_dict() for tool in tools]

    async def call_tool(self, name: Any, arguments: Any) -> Dict[str, Any]:
        start_time = time.time()
        logger.info("Tool called: %s", name)
        try:
            await self.registry.ensure_built()
            tool = self.registry.get(name) if isinstance(name, str) else None
            if tool is not None and tool.handler is not None:
                result = await tool.handler(arguments)
            else:
                # Off-catalog names are still forwarded; the remote API decides
                result = await self._execute(name, arguments, tool)
        except Exception as exc:
            latency_ms = (time.time() - start_time) * 1000
            if isinstance(exc, UnknownTool):
                logger.warning("Unknown tool requested: %s", name)
            else:
                logger.warning("Tool %s failed after %.0fms: %s", name, latency_ms, exc)
            return {
                "content": [{"type": "text", "text": tool_error_text(exc)}],
                "isError": True,
            }

        latency_ms = (time.time() - start_time) * 1000
        logger.info("Tool %s finished in %.0fms", name, latency_ms)
        response: Dict[str, Any] = {
            "content": [{"type": "text", "text": json.dumps(result, indent=2, default=str)}],
        }
        if isinstance(result, dict):
            response["structuredContent"] = result
        return response

    async def _execute(self, name: Any, arguments: Any, tool: Optional[ToolDefinition]) -> Any:
        call = self.registry.router.route(name, arguments)
        credentials = Credentials.resolve(call.parameters, self.settings)
        if tool is not None:
            tool.validate_arguments(call.parameters)

        task_id = await self.client.submit(call.category, call.subcategory, call.parameters, credentials)
        return await self.poller.wait(task_id, call.category, call.subcategory, credentials)

    async def aclose(self) -> None:
        await self.client.close()


@lru_cache
def get_dispatcher() -> ToolDispatcher:
    """Process-wide dispatcher used by the HTTP app and the stdio bridge."""
    return ToolDispatcher()
