"""
Central Logging
===============
Console logging for every entry point, plus rotating files when a log
directory is configured:
- all.log, errors.log, mcp.log, client.log
"""
import logging
import sys
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO

# Config
FMT = "%(asctime)s|%(levelname)-8s|%(name)-22s|%(message)s"
FMT_DETAIL = "%(asctime)s|%(levelname)-8s|%(name)-22s|%(filename)s:%(lineno)d|%(message)s"
DATE_FMT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES, BACKUP = 20 * 1024 * 1024, 5

# State
_init = {"central": False}


class ColorFormatter(logging.Formatter):
    """Formatter with ANSI colors for console."""
    C = {10: '\033[36m', 20: '\033[32m', 30: '\033[33m', 40: '\033[31m', 50: '\033[35m'}
    R = '\033[0m'

    def format(self, r):
        return f"{self.C.get(r.levelno, '')}{super().format(r)}{self.R}"


@lru_cache(maxsize=16)
def _handler(path: str, level: int = logging.DEBUG) -> RotatingFileHandler:
    """Cached rotating file handler factory."""
    h = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP, encoding='utf-8')
    h.setLevel(level)
    h.setFormatter(logging.Formatter(FMT_DETAIL, DATE_FMT))
    return h


def setup_central_logging(
    console_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    stream: TextIO = sys.stderr,
) -> None:
    """Initialize central logging. Call once at startup.

    The console handler writes to stderr by default so the stdio transport
    keeps stdout for protocol messages.
    """
    if _init["central"]:
        return

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    console = logging.StreamHandler(stream)
    console.setLevel(console_level)
    console.setFormatter(ColorFormatter(FMT, DATE_FMT) if stream.isatty() else logging.Formatter(FMT, DATE_FMT))
    root.addHandler(console)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        root.addHandler(_handler(str(log_dir / "all.log")))
        root.addHandler(_handler(str(log_dir / "errors.log"), logging.ERROR))
        for name, file in [("mcp", "mcp.log"), ("client", "client.log")]:
            logging.getLogger(f"genvr.{name}").addHandler(_handler(str(log_dir / file)))

    for name in ("uvicorn", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.propagate = True

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _init["central"] = True
    root.debug("Central logging initialized (log_dir=%s)", log_dir)


def mask_secret(value: Optional[str]) -> str:
    """Render a credential for logs: '***' plus its last four characters."""
    if not value:
        return "NOT SET"
    return "***" + value[-4:]


def log_startup_banner(settings) -> None:
    """Log server identity and credentials (token masked) once at startup."""
    log = logging.getLogger("genvr.main")
    log.info("=" * 60)
    log.info("%s v%s", settings.mcp_server_name, settings.mcp_server_version)
    log.info("  API base:     %s", settings.genvr_api_base)
    log.info("  User ID:      %s", settings.genvr_user_id or "NOT SET (must be passed per call)")
    log.info("  Access token: %s", mask_secret(settings.genvr_access_token))
    log.info("  Catalog:      %s", settings.catalog_path)
    log.info("  Schemas:      %s", settings.schemas_path)
    log.info("=" * 60)
