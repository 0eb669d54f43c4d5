from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger("genvr.catalog")

PathLike = Union[str, Path]


@dataclass(frozen=True, slots=True)
class ModelDescriptor:
    category: str
    subcategory: str
    description: Optional[str] = None

    @property
    def key(self) -> str:
        """Catalog/schema-cache key, e.g. ``imagegen/flux_dev``."""
        return f"{self.category}/{self.subcategory}"

    def to_dict(self) -> Dict[str, object]:
        return {
            "category": self.category,
            "subcategory": self.subcategory,
            "description": self.description,
        }


def parse_catalog(data: Any) -> List[ModelDescriptor]:
    """Turn raw catalog JSON into descriptors, keeping catalog order.

    Accepts ``{"curatedModels": [...]}`` or a bare list. Malformed and
    duplicate entries are skipped with a warning.
    """
    entries = data.get("curatedModels", []) if isinstance(data, dict) else data
    if not isinstance(entries, list):
        logger.warning("Catalog has no model list, nothing to register")
        return []

    models: List[ModelDescriptor] = []
    seen = set()
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning("Skipping malformed catalog entry: %r", entry)
            continue
        category = entry.get("category")
        subcategory = entry.get("subcategory")
        if not isinstance(category, str) or not isinstance(subcategory, str) or not category or not subcategory:
            logger.warning("Skipping catalog entry without category/subcategory: %r", entry)
            continue
        if (category, subcategory) in seen:
            logger.warning("Duplicate catalog entry %s/%s ignored", category, subcategory)
            continue
        seen.add((category, subcategory))
        description = entry.get("description")
        models.append(
            ModelDescriptor(
                category=category,
                subcategory=subcategory,
                description=description if isinstance(description, str) and description else None,
            )
        )
    return models


def _read_json(path: PathLike) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def load_catalog(path: PathLike) -> List[ModelDescriptor]:
    try:
        data = _read_json(path)
    except (OSError, ValueError) as exc:
        logger.error("Could not read model catalog %s: %s", path, exc)
        return []
    models = parse_catalog(data)
    logger.info("Loaded %d GenVR models from %s", len(models), path)
    return models


def load_schema_cache(path: PathLike) -> Dict[str, Any]:
    """Read the ``"<category>/<subcategory>" -> raw schema`` mapping.

    A missing or unreadable cache is not an error: every tool then uses the
    fallback contract.
    """
    try:
        data = _read_json(path)
    except (OSError, ValueError) as exc:
        logger.warning("No schemas cache found at %s (%s), will use minimal schema", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Schemas cache %s is not an object, ignoring it", path)
        return {}
    logger.info("Loaded %d schemas from cache", len(data))
    return data
