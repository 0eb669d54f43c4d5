#!/usr/bin/env python3
"""
GenVR MCP stdio bridge

Newline-delimited JSON-RPC on stdin/stdout, served in-process by the same
dispatcher as the HTTP app. Logs go to stderr.
Usage: genvr-mcp-stdio [--debug]
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional, Set, TextIO

from .config import get_settings
from .mcp.dispatcher import ToolDispatcher, get_dispatcher
from .mcp.protocol import PARSE_ERROR, error_response, handle_jsonrpc
from .utils.central_logging import log_startup_banner, setup_central_logging

logger = logging.getLogger("genvr.mcp.stdio")


class StdioBridge:
    def __init__(
        self,
        dispatcher: Optional[ToolDispatcher] = None,
        stdin: TextIO = sys.stdin,
        stdout: TextIO = sys.stdout,
    ):
        self.dispatcher = dispatcher or get_dispatcher()
        self.stdin = stdin
        self.stdout = stdout
        self._write_lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()

    async def handle_line(self, line: str) -> Optional[Dict[str, Any]]:
        """Handle one input line; None when nothing should be written back."""
        line = line.strip()
        if not line:
            return None
        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            return error_response(None, PARSE_ERROR, f"Parse error: {e}")
        return await handle_jsonrpc(message, self.dispatcher)

    async def _write(self, response: Dict[str, Any]) -> None:
        async with self._write_lock:
            self.stdout.write(json.dumps(response) + "\n")
            self.stdout.flush()

    async def _process(self, line: str) -> None:
        response = await self.handle_line(line)
        if response is not None:
            await self._write(response)

    async def serve(self) -> None:
        """Read until EOF; requests run concurrently, responses are written whole."""
        loop = asyncio.get_running_loop()
        logger.info("GenVR MCP stdio bridge started")
        try:
            while True:
                line = await loop.run_in_executor(None, self.stdin.readline)
                if not line:
                    break
                task = asyncio.create_task(self._process(line))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
            if self._pending:
                await asyncio.gather(*self._pending)
        finally:
            await self.dispatcher.aclose()
            logger.info("GenVR MCP stdio bridge stopped")


def main() -> None:
    parser = argparse.ArgumentParser(description="GenVR MCP stdio bridge")
    parser.add_argument("--debug", action="store_true", help="Verbose logging on stderr")
    args = parser.parse_args()

    settings = get_settings()
    if args.debug:
        settings.debug = True
    setup_central_logging(
        console_level=logging.DEBUG if settings.debug else logging.INFO,
        log_dir=settings.log_dir,
        stream=sys.stderr,
    )
    log_startup_banner(settings)

    asyncio.run(StdioBridge().serve())


if __name__ == "__main__":
    main()
