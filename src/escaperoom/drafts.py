"""Local autosave of the builder graph between sessions."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from .models import Hotspot, Puzzle, Settings
from .state import RoomState

logger = logging.getLogger(__name__)

DRAFT_FORMAT_VERSION = 3


@dataclass
class RoomDraft:
    """Serializable copy of a :class:`RoomState`."""

    settings: Settings = field(default_factory=Settings)
    puzzles: List[Puzzle] = field(default_factory=list)
    hotspots: List[Hotspot] = field(default_factory=list)

    @classmethod
    def capture(cls, state: RoomState) -> "RoomDraft":
        settings = state.settings
        return cls(
            settings=Settings(
                global_minutes=settings.global_minutes,
                background_image=settings.background_image,
                room_id=settings.room_id,
                name=settings.name,
            ),
            puzzles=list(state.puzzles.snapshot()),
            hotspots=list(state.hotspots.snapshot()),
        )

    def apply_to(self, state: RoomState) -> None:
        """Replace ``state``'s contents with this draft."""

        state.settings = Settings(
            global_minutes=self.settings.global_minutes,
            background_image=self.settings.background_image,
            room_id=self.settings.room_id,
            name=self.settings.name,
        )
        state.puzzles.replace_all(self.puzzles)
        state.hotspots.replace_all(
            Hotspot(h.id, h.puzzle_id, h.x_pct, h.y_pct) for h in self.hotspots
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "version": DRAFT_FORMAT_VERSION,
            "name": self.settings.name,
            "settings": self.settings.to_payload(),
            "puzzles": [puzzle.to_payload() for puzzle in self.puzzles],
            "hotspots": [hotspot.to_payload() for hotspot in self.hotspots],
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RoomDraft":
        settings_payload = payload.get("settings")
        if not isinstance(settings_payload, Mapping):
            raise ValueError("Invalid draft payload: missing settings")

        puzzles_payload = _sequence(payload.get("puzzles", []), "puzzles")
        hotspots_payload = _sequence(payload.get("hotspots", []), "hotspots")

        return cls(
            settings=Settings.from_payload(settings_payload, name=payload.get("name")),
            puzzles=[Puzzle.from_payload(entry) for entry in puzzles_payload],
            hotspots=[Hotspot.from_payload(entry) for entry in hotspots_payload],
        )


def _sequence(value: Any, field_name: str) -> List[Mapping[str, Any]]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise ValueError(f"Invalid draft payload: {field_name} must be a list")
    entries = list(value)
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise ValueError(f"Invalid draft payload: {field_name} entries must be objects")
    return entries


class DraftStore(ABC):
    """Interface describing where builder drafts are kept."""

    @abstractmethod
    def save(self, draft_id: str, draft: RoomDraft) -> None:
        """Persist ``draft`` under ``draft_id``."""

    @abstractmethod
    def load(self, draft_id: str) -> RoomDraft:
        """Return the stored draft.

        Raises:
            KeyError: If no draft is stored under ``draft_id``.
        """

    @abstractmethod
    def delete(self, draft_id: str) -> None:
        """Remove the stored draft if it exists."""

    def load_or_default(
        self, draft_id: str, default: RoomDraft | None = None
    ) -> RoomDraft:
        """Return the stored draft, or ``default`` if missing or unreadable.

        An empty draft is used when ``default`` is omitted.
        """

        _validate_draft_id(draft_id)
        try:
            return self.load(draft_id)
        except KeyError:
            return default if default is not None else RoomDraft()
        except (ValueError, TypeError) as exc:
            logger.warning("Discarding unreadable draft '%s': %s", draft_id, exc)
            return default if default is not None else RoomDraft()


class InMemoryDraftStore(DraftStore):
    def __init__(self) -> None:
        self._drafts: Dict[str, Dict[str, Any]] = {}

    def save(self, draft_id: str, draft: RoomDraft) -> None:
        self._drafts[_validate_draft_id(draft_id)] = draft.to_payload()

    def load(self, draft_id: str) -> RoomDraft:
        key = _validate_draft_id(draft_id)
        try:
            payload = self._drafts[key]
        except KeyError as exc:
            raise KeyError(f"Draft '{draft_id}' does not exist") from exc
        return RoomDraft.from_payload(payload)

    def delete(self, draft_id: str) -> None:
        self._drafts.pop(_validate_draft_id(draft_id), None)


class FileDraftStore(DraftStore):
    """Persist drafts as JSON files on disk."""

    def __init__(self, storage_dir: Path) -> None:
        self.storage_dir = storage_dir
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def save(self, draft_id: str, draft: RoomDraft) -> None:
        self._draft_path(draft_id).write_text(
            json.dumps(draft.to_payload(), indent=2), encoding="utf-8"
        )

    def load(self, draft_id: str) -> RoomDraft:
        draft_file = self._draft_path(draft_id)
        if not draft_file.exists():
            raise KeyError(f"Draft '{draft_id}' does not exist")
        try:
            payload = json.loads(draft_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Draft '{draft_id}' is not valid JSON") from exc
        if not isinstance(payload, Mapping):
            raise ValueError(f"Draft '{draft_id}' must contain a JSON object")
        return RoomDraft.from_payload(payload)

    def delete(self, draft_id: str) -> None:
        draft_file = self._draft_path(draft_id)
        if draft_file.exists():
            draft_file.unlink()

    def _draft_path(self, draft_id: str) -> Path:
        return self.storage_dir / f"{_validate_draft_id(draft_id)}.v{DRAFT_FORMAT_VERSION}.json"


def _validate_draft_id(draft_id: str) -> str:
    if not isinstance(draft_id, str):
        raise TypeError("draft_id must be a string")
    stripped = draft_id.strip()
    if not stripped:
        raise ValueError("draft_id must be a non-empty string")
    if "/" in stripped or "\\" in stripped:
        raise ValueError("draft_id must not contain path separators")
    return stripped


__all__ = [
    "RoomDraft",
    "DraftStore",
    "InMemoryDraftStore",
    "FileDraftStore",
    "DRAFT_FORMAT_VERSION",
]
