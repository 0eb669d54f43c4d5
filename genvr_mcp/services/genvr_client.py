"""
GenVR Remote Job Client
=======================

Thin async wrapper around the three GenVR job endpoints:
- POST /generate  -> submit a job, returns data.id
- POST /status    -> observe job status
- POST /response  -> fetch the finished result

Credentials travel with every call, never as client state, so one
process can serve many GenVR accounts at the same time.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional

import httpx

from ..config import Settings, get_settings
from ..utils.central_logging import mask_secret
from ..utils.errors import MissingCredentials, RemoteRequestError
from ..utils.http import extract_http_error

logger = logging.getLogger("genvr.client")

TERMINAL_STATUSES = ("completed", "failed")

# Argument names a caller may use to pass credentials with a tool call
USER_ID_ARG = "userId"
ACCESS_TOKEN_ARG = "accessToken"


@dataclass(frozen=True)
class Credentials:
    user_id: str
    access_token: str

    def __repr__(self) -> str:
        return f"Credentials(user_id={self.user_id!r}, access_token={mask_secret(self.access_token)!r})"

    @classmethod
    def resolve(cls, arguments: MutableMapping[str, Any], settings: Optional[Settings] = None) -> "Credentials":
        """Take credentials out of the call arguments, else use the configured defaults.

        The credential keys are popped from ``arguments`` so they never reach
        the generate body as model parameters.
        """
        settings = settings or get_settings()
        user_id = arguments.pop(USER_ID_ARG, None) or settings.genvr_user_id
        access_token = arguments.pop(ACCESS_TOKEN_ARG, None) or settings.genvr_access_token
        if not user_id or not access_token:
            raise MissingCredentials()
        return cls(user_id=str(user_id), access_token=str(access_token))


@dataclass(slots=True)
class TaskStatus:
    status: Optional[str]
    error: Optional[Any] = None
    raw: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_payload(cls, payload: Any) -> "TaskStatus":
        """Read status/error from ``data`` first, then from the top level."""
        if not isinstance(payload, dict):
            return cls(status=None, raw=None)
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        status = data.get("status") or payload.get("status")
        error = data.get("error") or payload.get("error")
        return cls(status=status, error=error, raw=payload)


class GenVRClient:
    """Async client for the GenVR generation API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        *,
        debug: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = str(base_url or settings.genvr_api_base).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.debug = settings.debug if debug is None else debug
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-init async HTTP client."""
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, endpoint: str, body: Dict[str, Any], credentials: Credentials) -> Any:
        """POST ``body`` plus the injected ``uid`` to ``endpoint``.

        Raises:
            RemoteRequestError: on transport failure, non-2xx status or a
                body that is not JSON.
        """
        url = f"{self.base_url}{endpoint}"
        payload = {**body, "uid": credentials.user_id}
        headers = {"Authorization": f"Bearer {credentials.access_token}"}

        if self.debug:
            logger.debug("API call to %s", url)
            logger.debug("Request body: %s", json.dumps(payload, default=str))
            logger.debug("Authorization: Bearer %s", mask_secret(credentials.access_token))

        try:
            response = await self.client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("GenVR request to %s failed: %s", endpoint, exc)
            raise RemoteRequestError(f"GenVR API request to {endpoint} failed: {exc}") from exc

        if not response.is_success:
            message = extract_http_error(response)
            logger.warning("GenVR API error on %s: %s %s", endpoint, response.status_code, message)
            raise RemoteRequestError(
                f"GenVR API error: {response.status_code} {response.reason_phrase} - {message}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            result = response.json()
        except ValueError as exc:
            raise RemoteRequestError(
                f"GenVR API returned a non-JSON body from {endpoint}",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        if self.debug:
            logger.debug("API success response: %s", json.dumps(result, indent=2, default=str))
        return result

    async def submit(
        self,
        category: str,
        subcategory: str,
        parameters: Dict[str, Any],
        credentials: Credentials,
    ) -> str:
        """Submit a generation job and return its task id.

        ``parameters`` are flattened next to ``category``/``subcategory``.
        """
        body = {"category": category, "subcategory": subcategory, **parameters}
        result = await self._request("/generate", body, credentials)

        data = result.get("data") if isinstance(result, dict) else None
        task_id = data.get("id") if isinstance(data, dict) else None
        if not task_id:
            raise RemoteRequestError(
                "No task ID returned from generate endpoint",
                body=json.dumps(result, default=str),
            )
        logger.info("Submitted %s/%s as task %s", category, subcategory, task_id)
        return str(task_id)

    async def status(
        self,
        task_id: str,
        category: str,
        subcategory: str,
        credentials: Credentials,
    ) -> TaskStatus:
        result = await self._request(
            "/status",
            {"id": task_id, "category": category, "subcategory": subcategory},
            credentials,
        )
        return TaskStatus.from_payload(result)

    async def fetch_result(
        self,
        task_id: str,
        category: str,
        subcategory: str,
        credentials: Credentials,
    ) -> Any:
        return await self._request(
            "/response",
            {"id": task_id, "category": category, "subcategory": subcategory},
            credentials,
        )
