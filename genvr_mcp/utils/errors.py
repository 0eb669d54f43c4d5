from __future__ import annotations

import logging
import re
from typing import Any, Optional

logger = logging.getLogger("genvr.errors")

# Patterns that might leak credentials
SENSITIVE_PATTERNS = [
    r"api[_-]?key[=:\s]+\S+",
    r"password[=:\s]+\S+",
    r"access[_-]?token[=:\s]+\S+",
    r"secret[=:\s]+\S+",
    r"bearer\s+\S+",
]


def _sanitize_error_message(message: str) -> str:
    """Remove credentials from error messages before they leave the process."""
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.IGNORECASE)

    # Truncate very long upstream bodies
    if len(sanitized) > 500:
        sanitized = sanitized[:500] + "... [truncated]"

    return sanitized


class GenVRError(Exception):
    """Base class for everything the tool layer raises on purpose."""


class RemoteRequestError(GenVRError):
    """The GenVR API answered with a non-2xx status or could not be reached."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TaskFailed(GenVRError):
    """The remote job reported status 'failed'."""

    def __init__(self, detail: Optional[Any] = None) -> None:
        self.detail = detail
        super().__init__(f"Task failed: {detail or 'Unknown error'}")


class TaskTimedOut(GenVRError):
    """The poller ran out of attempts before the job reached a terminal state."""

    def __init__(self, task_id: str, attempts: int) -> None:
        self.task_id = task_id
        self.attempts = attempts
        super().__init__(f"Task timed out after {attempts} status checks (task {task_id})")


class UnknownTool(GenVRError):
    def __init__(self, name: Optional[str]) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class MissingArguments(GenVRError):
    def __init__(self) -> None:
        super().__init__("No arguments provided")


class InvalidArguments(GenVRError):
    """Caller arguments rejected by a registered tool's parameter contract."""

    def __init__(self, tool_name: str, errors: list) -> None:
        self.tool_name = tool_name
        self.errors = errors
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ())) or '<root>'}: {err.get('msg')}" for err in errors
        )
        super().__init__(f"Invalid arguments for {tool_name}: {details}")


class MissingCredentials(GenVRError):
    def __init__(self) -> None:
        super().__init__(
            "GenVR credentials missing: pass userId and accessToken or set GENVR_USER_ID and GENVR_ACCESS_TOKEN"
        )


def tool_error_text(exc: BaseException) -> str:
    """Human-readable text for an isError tool result."""
    message = _sanitize_error_message(str(exc) or exc.__class__.__name__)
    return f"Tool execution failed: {message}"
