"""Process-wide logging setup."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Initialize logging once with a shared format.

    ``LOG_LEVEL`` in the environment wins over the configured level so a
    packaged build can be made verbose without editing its YAML.
    """
    resolved_level = (os.getenv("LOG_LEVEL") or level or "INFO").upper()
    logging.basicConfig(level=resolved_level, format=LOG_FORMAT)
    # httpx logs every request at INFO; keep it for DEBUG sessions only.
    if resolved_level != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)
