# dealscout/config/log.py
"""Process-wide logging setup: one format, stdout plus an optional rotating file."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_TAG = "_dealscout_handler"


def setup_logging(level: str | int = "INFO", log_file: str | None = None) -> logging.Logger:
    """
    Configure the root logger once.

    Calling again only updates the level (and adds the file handler if it was
    missing); handlers are never duplicated.
    """
    root = logging.getLogger()
    root.setLevel(level if isinstance(level, int) else level.upper())
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    ours = [h for h in root.handlers if getattr(h, _HANDLER_TAG, None)]
    kinds = {getattr(h, _HANDLER_TAG) for h in ours}

    if "stream" not in kinds:
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(formatter)
        setattr(stream, _HANDLER_TAG, "stream")
        root.addHandler(stream)

    if log_file and "file" not in kinds:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_TAG, "file")
        root.addHandler(handler)

    # third-party chatter
    for noisy in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return root


__all__ = ["setup_logging", "LOG_FORMAT"]
