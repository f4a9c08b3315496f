from __future__ import annotations

import logging
from typing import Any, Dict, Optional

_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: str = "info") -> None:
    """Install the process-wide handler used by the CLI and the HTTP server."""
    logging.basicConfig(
        level=_LEVELS.get(str(level or "info").lower(), logging.INFO),
        format=_FORMAT,
        datefmt=_DATEFMT,
    )


def log_message(source: str, message: str, *, severity: str = "info", details: Optional[Dict[str, Any]] = None) -> None:
    """
    Best-effort diagnostic sink. Routes to the ``logging`` hierarchy under the
    ``wallet_tracker.<source>`` logger so callers only need a source label.
    """
    logger = logging.getLogger(f"wallet_tracker.{source}")
    payload = message
    if details:
        payload += f" -> {details}"
    logger.log(_LEVELS.get(severity.lower(), logging.INFO), payload)


__all__ = ["configure_logging", "log_message"]
