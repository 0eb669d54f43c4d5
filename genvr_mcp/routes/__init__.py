"""
GenVR MCP server routes

Route Modules:
- mcp: MCP discovery, SSE and per-request JSON-RPC endpoints
- health: liveness probe with registry state
"""

from . import health, mcp

__all__ = ["health", "mcp"]
