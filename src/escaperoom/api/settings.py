"""Configuration helpers for deploying the room service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from ..models import DEFAULT_GLOBAL_MINUTES
from ..rooms import DEFAULT_HOTSPOT_SIZE

DEFAULT_DATABASE_URL = "sqlite:///escaperoom.db"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _normalise_path(value: str | None) -> Path | None:
    if value is None:
        return None

    trimmed = value.strip()
    if not trimmed:
        return None

    return Path(trimmed).expanduser()


def _normalise_string(value: str | None, *, default: str) -> str:
    if value is None:
        return default

    trimmed = value.strip()
    return trimmed or default


def _parse_positive(value: str | None, *, name: str, default: float, integer: bool) -> float:
    if value is None or not value.strip():
        return default

    kind = "integer" if integer else "number"
    try:
        parsed: float = int(value.strip()) if integer else float(value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a positive {kind}.") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be greater than zero.")
    return parsed


def _parse_bool(value: str | None, *, name: str) -> bool:
    if value is None or not value.strip():
        return False
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag.")


@dataclass(frozen=True)
class RoomApiSettings:
    """Deployment settings for the room service.

    Values are read from environment variables so the service can be
    configured without code changes. Empty strings are treated as unset.
    """

    database_url: str = DEFAULT_DATABASE_URL
    hotspot_size: float = DEFAULT_HOTSPOT_SIZE
    default_minutes: int = DEFAULT_GLOBAL_MINUTES
    draft_dir: Path | None = None
    log_level: str = "INFO"
    echo_sql: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RoomApiSettings":
        """Return settings populated from ``environ``.

        Args:
            environ: Optional mapping of environment variables. When omitted,
                :data:`os.environ` is used.
        """

        source = environ if environ is not None else os.environ

        return cls(
            database_url=_normalise_string(
                source.get("ESCAPEROOM_DATABASE_URL"), default=DEFAULT_DATABASE_URL
            ),
            hotspot_size=_parse_positive(
                source.get("ESCAPEROOM_HOTSPOT_SIZE"),
                name="ESCAPEROOM_HOTSPOT_SIZE",
                default=DEFAULT_HOTSPOT_SIZE,
                integer=False,
            ),
            default_minutes=int(
                _parse_positive(
                    source.get("ESCAPEROOM_DEFAULT_MINUTES"),
                    name="ESCAPEROOM_DEFAULT_MINUTES",
                    default=DEFAULT_GLOBAL_MINUTES,
                    integer=True,
                )
            ),
            draft_dir=_normalise_path(source.get("ESCAPEROOM_DRAFT_DIR")),
            log_level=_normalise_string(
                source.get("ESCAPEROOM_LOG_LEVEL"), default="INFO"
            ).upper(),
            echo_sql=_parse_bool(
                source.get("ESCAPEROOM_ECHO_SQL"), name="ESCAPEROOM_ECHO_SQL"
            ),
        )


__all__ = ["RoomApiSettings", "DEFAULT_DATABASE_URL"]
