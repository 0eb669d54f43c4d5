from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..config import get_settings
from ..utils.errors import TaskFailed, TaskTimedOut
from .genvr_client import Credentials, GenVRClient

logger = logging.getLogger("genvr.poller")

Sleep = Callable[[float], Awaitable[Any]]


class TaskPoller:
    """Observe one GenVR task from submission to a terminal state.

    Only a non-terminal status is retried. Transport errors from the
    client propagate on the spot, and a ``failed`` status raises
    :class:`TaskFailed` without sleeping.
    """

    def __init__(
        self,
        client: GenVRClient,
        *,
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
        backoff_factor: Optional[float] = None,
        max_delay_ms: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self.client = client
        self.max_attempts = max_attempts if max_attempts is not None else settings.poll_max_attempts
        self.base_delay_ms = base_delay_ms if base_delay_ms is not None else settings.poll_base_delay_ms
        self.backoff_factor = backoff_factor if backoff_factor is not None else settings.poll_backoff_factor
        self.max_delay_ms = max_delay_ms if max_delay_ms is not None else settings.poll_max_delay_ms
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after status check ``attempt`` (0-indexed)."""
        delay_ms = min(self.base_delay_ms * self.backoff_factor ** attempt, self.max_delay_ms)
        return delay_ms / 1000.0

    async def wait(self, task_id: str, category: str, subcategory: str, credentials: Credentials) -> Any:
        """Poll until the task completes, then return the fetched result."""
        for attempt in range(self.max_attempts):
            status = await self.client.status(task_id, category, subcategory, credentials)
            logger.debug("Task %s attempt %d/%d: status=%s", task_id, attempt + 1, self.max_attempts, status.status)

            if status.status == "completed":
                logger.info("Task %s completed after %d status checks", task_id, attempt + 1)
                return await self.client.fetch_result(task_id, category, subcategory, credentials)

            if status.status == "failed":
                logger.warning("Task %s failed: %s", task_id, status.error)
                raise TaskFailed(status.error)

            # No sleep after the last check, the loop is over anyway
            if attempt < self.max_attempts - 1:
                await self._sleep(self.delay_for(attempt))

        logger.error("Task %s timed out after %d status checks", task_id, self.max_attempts)
        raise TaskTimedOut(task_id, self.max_attempts)
