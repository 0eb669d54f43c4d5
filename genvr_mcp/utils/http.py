from __future__ import annotations

from typing import Any, Optional

from httpx import Response

DEFAULT_ERROR_MESSAGE = "Upstream request failed"


def _message_from(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, dict):
        return _message_from(value.get("message")) or _message_from(value.get("detail"))
    return None


def extract_http_error(response: Optional[Response], default: str = DEFAULT_ERROR_MESSAGE) -> str:
    """Best human-readable message from a failed upstream response.

    Looks at ``error`` (string or ``{"message": ...}``), then ``detail``, then
    ``message``, and finally the raw body text.
    """
    if response is None:
        return default

    try:
        data = response.json()
    except ValueError:
        return (response.text or "").strip() or default

    if isinstance(data, dict):
        for key in ("error", "detail", "message"):
            message = _message_from(data.get(key))
            if message:
                return message

    text = str(data) if data not in (None, "") else ""
    return text or default
