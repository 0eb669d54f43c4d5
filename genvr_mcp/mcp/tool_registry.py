"""
GenVR Tool Registry
===================

One MCP tool per catalog model:

    name         generate_<category>_<subcategory>
    inputSchema  translated cached schema, or the generic fallback
    description  category, model and the best description available

The registry is built once per process (lazily, on the first list or
call) and is read-only afterwards. Serverless cold starts simply build it
again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ValidationError
from pydantic_core import SchemaError

from ..config import get_settings
from ..services.catalog import ModelDescriptor, load_catalog, load_schema_cache
from ..utils.errors import InvalidArguments
from .invocation import InvocationRouter
from .schema_translator import FALLBACK_SCHEMA, ParameterSchema, translate

logger = logging.getLogger("genvr.registry")

Handler = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: Dict[str, Any]
    category: str
    subcategory: str
    validator: Type[BaseModel] = field(repr=False, compare=False)
    uses_fallback: bool = False
    handler: Optional[Handler] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

    def validate_arguments(self, parameters: Mapping[str, Any]) -> None:
        """Check caller arguments against the tool contract before any remote call."""
        try:
            self.validator.model_validate(dict(parameters))
        except ValidationError as exc:
            raise InvalidArguments(self.name, exc.errors(include_url=False)) from exc


def describe(model: ModelDescriptor, schema: Optional[ParameterSchema]) -> str:
    extra = model.description or (schema.description if schema else None) or ""
    return (
        f"Generate content using {model.key}. "
        f"Category: {model.category}, Model: {model.subcategory}. {extra}"
    ).strip()


def build_tools(
    catalog: Iterable[ModelDescriptor],
    schema_cache: Mapping[str, Any],
    router: Optional[InvocationRouter] = None,
    bind: Optional[Callable[[ToolDefinition], Handler]] = None,
) -> List[ToolDefinition]:
    """Build tool definitions in catalog order.

    Entries whose tool name would not parse back to the same
    (category, subcategory) are skipped with a warning. ``bind`` attaches
    a call handler to each definition.
    """
    router = router or InvocationRouter()
    tools: List[ToolDefinition] = []
    seen = set()

    for model in catalog:
        name = router.tool_name(model.category, model.subcategory)
        if router.parse_tool_name(name) != (model.category, model.subcategory):
            logger.warning(
                "Skipping %s: tool name %s does not map back to it (category must be canonical and contain no '_')",
                model.key,
                name,
            )
            continue
        if name in seen:
            logger.warning("Skipping %s: duplicate tool name %s", model.key, name)
            continue
        seen.add(name)

        schema = translate(schema_cache.get(model.key))
        validator = None
        if schema is None:
            logger.debug("No schema found for %s, using fallback schema", name)
        else:
            try:
                validator = schema.build_validator(f"{name}_arguments")
            except (SchemaError, TypeError, ValueError, OverflowError) as exc:
                logger.debug("Schema for %s rejected (%s), using fallback schema", name, exc)
                schema = None
        contract = schema or FALLBACK_SCHEMA

        tool = ToolDefinition(
            name=name,
            description=describe(model, schema),
            input_schema=contract.to_json_schema(),
            category=model.category,
            subcategory=model.subcategory,
            validator=validator if validator is not None else contract.build_validator(f"{name}_arguments"),
            uses_fallback=schema is None,
        )
        if bind is not None:
            tool = replace(tool, handler=bind(tool))
        tools.append(tool)

    logger.info("Generated %d tools successfully", len(tools))
    return tools


class ToolRegistry:
    """Once-initialized holder for the process-wide tool table."""

    def __init__(
        self,
        catalog_loader: Optional[Callable[[], Sequence[ModelDescriptor]]] = None,
        schema_loader: Optional[Callable[[], Mapping[str, Any]]] = None,
        router: Optional[InvocationRouter] = None,
        canonical_categories: Optional[Iterable[str]] = None,
        bind: Optional[Callable[[ToolDefinition], Handler]] = None,
    ) -> None:
        settings = get_settings()
        self._bind = bind
        self._catalog_loader = catalog_loader or (lambda: load_catalog(settings.catalog_path))
        self._schema_loader = schema_loader or (lambda: load_schema_cache(settings.schemas_path))
        self.router = router or InvocationRouter(settings.tool_prefix, settings.category_aliases)
        self.canonical_categories = frozenset(
            settings.canonical_category_set() if canonical_categories is None else canonical_categories
        )
        self._tools: Tuple[ToolDefinition, ...] = ()
        self._by_name: Mapping[str, ToolDefinition] = MappingProxyType({})
        self._unknown_categories: Tuple[str, ...] = ()
        self._built = False
        self._lock = asyncio.Lock()

    @property
    def built(self) -> bool:
        return self._built

    @property
    def tools(self) -> Tuple[ToolDefinition, ...]:
        return self._tools

    @property
    def unknown_categories(self) -> Tuple[str, ...]:
        """Catalog categories with no known canonical form."""
        return self._unknown_categories

    def build_now(self) -> Tuple[ToolDefinition, ...]:
        """Build synchronously if not built yet; later calls are no-ops."""
        if self._built:
            return self._tools

        catalog = list(self._catalog_loader())
        schema_cache = self._schema_loader()
        logger.info("Registering %d GenVR tools...", len(catalog))

        unknown = []
        for model in catalog:
            if model.category not in self.canonical_categories and model.category not in unknown:
                unknown.append(model.category)
        for category in unknown:
            logger.warning(
                "Catalog category %r has no known canonical form; add it to GENVR_CANONICAL_CATEGORIES "
                "or GENVR_CATEGORY_ALIASES",
                category,
            )

        tools = build_tools(catalog, schema_cache, self.router, self._bind)
        self._tools = tuple(tools)
        self._by_name = MappingProxyType({tool.name: tool for tool in tools})
        self._unknown_categories = tuple(unknown)
        self._built = True
        return self._tools

    async def ensure_built(self) -> Tuple[ToolDefinition, ...]:
        if self._built:
            return self._tools
        async with self._lock:
            return self.build_now()

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._by_name.get(name)

    def __len__(self) -> int:
        return len(self._tools)
