"""Logging setup for command-line and server entry points."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Install a single stream handler on the ``escaperoom`` logger."""

    logger = logging.getLogger("escaperoom")
    resolved = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level: {level!r}")

    logger.setLevel(resolved)
    if not any(getattr(handler, "_escaperoom", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._escaperoom = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


__all__ = ["configure_logging", "LOG_FORMAT"]
