from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from ..config import DEFAULT_CATEGORY_ALIASES
from ..services.genvr_client import ACCESS_TOKEN_ARG, USER_ID_ARG
from ..utils.errors import MissingArguments, UnknownTool

logger = logging.getLogger("genvr.router")

# Credentials may sit next to a wrapped argument bag instead of inside it
CREDENTIAL_FIELDS = (USER_ID_ARG, ACCESS_TOKEN_ARG)

# Category/subcategory echoes some clients copy from the raw schema
INTERNAL_CATEGORY_FIELDS = ("category_genvr", "subcategory_genvr")

DEFAULT_TOOL_PREFIX = "generate_"


@dataclass(slots=True)
class RoutedCall:
    category: str
    subcategory: str
    parameters: Dict[str, Any] = field(default_factory=dict)


class InvocationRouter:
    """Maps tool names to GenVR (category, subcategory) pairs and back.

    ``tool_name`` and ``parse_tool_name`` are exact inverses for every
    category without an underscore.
    """

    def __init__(self, prefix: str = DEFAULT_TOOL_PREFIX, aliases: Optional[Mapping[str, str]] = None) -> None:
        self.prefix = prefix
        self.aliases: Dict[str, str] = dict(DEFAULT_CATEGORY_ALIASES if aliases is None else aliases)

    def tool_name(self, category: str, subcategory: str) -> str:
        return f"{self.prefix}{category}_{subcategory}"

    def expand_category(self, category: str) -> str:
        """Short category form to canonical (``image`` -> ``imagegen``); canonical names pass unchanged."""
        return self.aliases.get(category, category)

    def parse_tool_name(self, name: Any) -> Tuple[str, str]:
        """Split ``generate_imagegen_flux_dev`` into ``("imagegen", "flux_dev")``.

        Only the first separator splits; the subcategory keeps the rest.
        """
        if not isinstance(name, str) or not name.startswith(self.prefix):
            raise UnknownTool(name)
        category, _, subcategory = name[len(self.prefix):].partition("_")
        if not category:
            raise UnknownTool(name)
        return self.expand_category(category), subcategory

    def route(self, tool_name: Any, raw_args: Any) -> RoutedCall:
        """Resolve a tool call into the submission for the remote API."""
        category, subcategory = self.parse_tool_name(tool_name)

        if raw_args is None or not isinstance(raw_args, Mapping):
            raise MissingArguments()

        parameters = _unwrap_parameters(dict(raw_args))
        # Some clients wrap the argument bag twice
        if isinstance(parameters.get("parameters"), Mapping):
            logger.debug("Arguments for %s nested twice, flattening again", tool_name)
            parameters = _unwrap_parameters(parameters)

        model = parameters.get("model")
        if not subcategory and isinstance(model, str) and model:
            subcategory = parameters.pop("model")
            logger.debug("Using 'model' argument as subcategory: %s", subcategory)

        for key in INTERNAL_CATEGORY_FIELDS:
            parameters.pop(key, None)

        return RoutedCall(category=category, subcategory=subcategory, parameters=parameters)


def _unwrap_parameters(args: Dict[str, Any]) -> Dict[str, Any]:
    nested = args.get("parameters")
    if not isinstance(nested, Mapping):
        return dict(args)
    unwrapped = dict(nested)
    for key in CREDENTIAL_FIELDS:
        if args.get(key):
            unwrapped[key] = args[key]
    return unwrapped
