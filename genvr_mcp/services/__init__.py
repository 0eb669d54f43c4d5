"""Service layer exports."""

from . import catalog, genvr_client, task_poller

__all__ = ["catalog", "genvr_client", "task_poller"]
