"""
MCP layer for the GenVR server.

- schema_translator: raw GenVR parameter schemas to tool contracts
- invocation: tool name <-> (category, subcategory) routing
- tool_registry: once-built table of tools, one per catalog model
- dispatcher: list/call boundary used by every transport
- protocol: JSON-RPC method handling
"""

from .dispatcher import ToolDispatcher, get_dispatcher
from .invocation import InvocationRouter, RoutedCall
from .protocol import handle_jsonrpc
from .schema_translator import FALLBACK_SCHEMA, ParameterSchema, PropertySpec, translate
from .tool_registry import ToolDefinition, ToolRegistry, build_tools

__all__ = [
    "FALLBACK_SCHEMA",
    "InvocationRouter",
    "ParameterSchema",
    "PropertySpec",
    "RoutedCall",
    "ToolDefinition",
    "ToolDispatcher",
    "ToolRegistry",
    "build_tools",
    "get_dispatcher",
    "handle_jsonrpc",
    "translate",
]
