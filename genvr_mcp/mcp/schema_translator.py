"""
Schema Translator
=================

Turns one model's raw GenVR parameter schema into a ``ParameterSchema``:
the JSON Schema advertised as a tool's ``inputSchema`` plus a pydantic
validator compiled from the same data.

Raw schema shapes accepted from the schemas cache:
- ``{"schema": {"properties": {...}, "required": [...]}, "description": "..."}``
- ``{"properties": {...}, "required": [...]}``

Anything else counts as "no schema" and the caller uses ``FALLBACK_SCHEMA``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, create_model

logger = logging.getLogger("genvr.schema")

# GenVR bookkeeping fields, never part of a tool's public contract
RESERVED_FIELDS = frozenset({"category_genvr", "subcategory_genvr", "uid", "token"})

_MISSING = object()

_PRIMITIVES: Dict[str, type] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
}


@dataclass(frozen=True)
class PropertySpec:
    name: str
    type: str = "string"
    description: str = ""
    enum: Optional[Tuple[Any, ...]] = None
    default: Any = _MISSING
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    max_items: Optional[int] = None
    items: Optional[Dict[str, Any]] = None

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING

    def to_json_schema(self) -> Dict[str, Any]:
        prop: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum is not None:
            prop["enum"] = list(self.enum)
        if self.has_default:
            prop["default"] = self.default
        if self.minimum is not None:
            prop["minimum"] = self.minimum
        if self.maximum is not None:
            prop["maximum"] = self.maximum
        if self.max_items is not None:
            prop["maxItems"] = self.max_items
        if self.items is not None:
            prop["items"] = self.items
        return prop

    def annotation(self) -> Any:
        """Python type the validator enforces for this property."""
        if self.enum and all(isinstance(v, (str, int, float, bool)) or v is None for v in self.enum):
            return Literal[self.enum]
        if self.type == "array":
            item_type = self.items.get("type") if isinstance(self.items, dict) else None
            return List[_PRIMITIVES.get(item_type, Any) if isinstance(item_type, str) else Any]
        return _PRIMITIVES.get(self.type, Any)

    def field_constraints(self) -> Dict[str, Any]:
        constraints: Dict[str, Any] = {}
        if self.type in ("number", "integer"):
            if self.minimum is not None:
                constraints["ge"] = self.minimum
            if self.maximum is not None:
                constraints["le"] = self.maximum
        if self.type == "array" and self.max_items is not None:
            constraints["max_length"] = self.max_items
        return constraints


@dataclass(frozen=True)
class ParameterSchema:
    properties: Dict[str, PropertySpec] = field(default_factory=dict)
    required: Tuple[str, ...] = ()
    description: Optional[str] = None

    def to_json_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {name: spec.to_json_schema() for name, spec in self.properties.items()},
            "required": list(self.required),
        }

    def build_validator(self, model_name: str) -> Type[BaseModel]:
        """Compose a pydantic model that checks caller arguments.

        Fields are declared under positional names with the real parameter
        name as alias, so names like ``model_config`` or ``seed-value`` are
        safe. Extra arguments are let through.
        """
        fields: Dict[str, Any] = {}
        for index, (name, spec) in enumerate(self.properties.items()):
            annotation = spec.annotation()
            constraints = spec.field_constraints()
            if name in self.required:
                fields[f"p{index}"] = (
                    annotation,
                    Field(..., alias=name, description=spec.description, **constraints),
                )
            else:
                default = spec.default if spec.has_default else None
                fields[f"p{index}"] = (
                    Optional[annotation],
                    Field(default, alias=name, description=spec.description, **constraints),
                )
        return create_model(
            model_name,
            __config__=ConfigDict(extra="allow"),
            **fields,
        )


def _description(prop: Dict[str, Any], key: str) -> str:
    text = prop.get("description")
    return text if isinstance(text, str) and text else f"Parameter: {key}"


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def _unwrap(raw: Any) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Find the object holding ``properties`` and the schema-level description."""
    if not isinstance(raw, dict):
        return None, None
    inner = raw.get("schema")
    if isinstance(inner, dict) and isinstance(inner.get("properties"), dict):
        return inner, raw.get("description") or inner.get("description")
    if isinstance(raw.get("properties"), dict):
        return raw, raw.get("description")
    return None, None


def translate(raw_schema: Any) -> Optional[ParameterSchema]:
    """Translate a raw cached schema, or return None when it is unusable."""
    body, description = _unwrap(raw_schema)
    if body is None:
        return None

    raw_required = body.get("required")
    declared_required = {r for r in raw_required if isinstance(r, str)} if isinstance(raw_required, list) else set()

    properties: Dict[str, PropertySpec] = {}
    required: List[str] = []
    for key, prop in body["properties"].items():
        if not isinstance(prop, dict):
            logger.debug("Skipping malformed property %r", key)
            continue
        if prop.get("display") == "hidden" or key in RESERVED_FIELDS:
            continue

        prop_type = prop.get("type") if isinstance(prop.get("type"), str) else "string"
        enum = prop.get("enum")
        items = prop.get("items")
        max_items = prop.get("maxItems")
        properties[key] = PropertySpec(
            name=key,
            type=prop_type,
            description=_description(prop, key),
            enum=tuple(enum) if isinstance(enum, list) else None,
            default=prop["default"] if "default" in prop else _MISSING,
            minimum=_number(prop.get("minimum")),
            maximum=_number(prop.get("maximum")),
            max_items=_count(max_items),
            items=items if prop_type == "array" and isinstance(items, dict) else None,
        )
        if key in declared_required:
            required.append(key)

    return ParameterSchema(
        properties=properties,
        required=tuple(required),
        description=description if isinstance(description, str) and description else None,
    )


FALLBACK_SCHEMA = ParameterSchema(
    properties={
        "prompt": PropertySpec("prompt", "string", "The input prompt or description for the AI model"),
        "userId": PropertySpec("userId", "string", "GenVR User ID (defaults to the server's GENVR_USER_ID)"),
        "accessToken": PropertySpec(
            "accessToken", "string", "GenVR Access Token (defaults to the server's GENVR_ACCESS_TOKEN)"
        ),
    },
    required=("prompt",),
)
