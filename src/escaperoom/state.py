"""Application state shared by the builder, play engine, and persistence sync."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from .models import Settings, new_client_id
from .stores import HotspotStore, PuzzleStore


@dataclass
class RoomState:
    """The complete room graph edited during one builder session."""

    settings: Settings = field(default_factory=Settings)
    puzzles: PuzzleStore = field(default_factory=PuzzleStore)
    hotspots: HotspotStore = field(default_factory=HotspotStore)

    def __post_init__(self) -> None:
        self.puzzles.bind_hotspots(self.hotspots)

    @classmethod
    def empty(
        cls,
        settings: Settings | None = None,
        *,
        id_factory: Callable[[], str] = new_client_id,
    ) -> "RoomState":
        return cls(
            settings=settings or Settings(),
            puzzles=PuzzleStore(id_factory=id_factory),
            hotspots=HotspotStore(id_factory=id_factory),
        )

    def current_settings(self) -> Settings:
        return self.settings


__all__ = ["RoomState"]
