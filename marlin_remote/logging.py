"""Logging setup for the CLI and long-running monitors."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# One DEBUG line per printer request: method, path, body, status, latency.
WIRE_LOGGER_NAME = "marlin_remote.wire"

NETWORK_LOGGERS = (WIRE_LOGGER_NAME, "aiohttp.client", "aiohttp.server", "aiohttp.access")


def configure_logging(
    level: str = "INFO", *, log_path: Optional[Path] = None, log_network: bool = False
) -> None:
    """Install console (and optionally file) handlers on the root logger.

    Parameters
    ----------
    level:
        Log level name for the root logger, e.g. "INFO". Unknown names fall back to INFO.
    log_path:
        Optional file that receives the same records as the console.
    log_network:
        When true, request traces from :data:`WIRE_LOGGER_NAME` and aiohttp are
        emitted at DEBUG regardless of ``level``. Otherwise they are held at WARNING.
    """

    logging.captureWarnings(True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    network_level = logging.DEBUG if log_network else logging.WARNING
    for name in NETWORK_LOGGERS:
        logging.getLogger(name).setLevel(network_level)
