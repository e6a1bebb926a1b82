"""Top-level builder session wiring the stores, controller, engine, and sync."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from .drafts import DraftStore, FileDraftStore, RoomDraft
from .geometry import DEFAULT_DEBOUNCE_SECONDS, ContainerMeasurer, GeometryTracker, StaticContainer
from .interaction import InteractionController, InteractionState, PointerCapture, PointerEvent
from .models import DEFAULT_GLOBAL_MINUTES, Puzzle, PuzzleDraft, Settings
from .play import PlayEngine, PlayStatus
from .scheduling import ManualScheduler, Scheduler
from .schemas import SaveRoomResponse
from .state import RoomState
from .sync import PersistenceSync, RoomTransport

if TYPE_CHECKING:
    from .api.settings import RoomApiSettings

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


class Mode(str, Enum):
    BUILDER = "builder"
    PLAY = "play"


class BuilderSession:
    """Own one author's room graph and every component that works on it.

    The session is the explicit replacement for ambient UI state: it creates
    the :class:`RoomState` and hands it by reference to the interaction
    controller, the play engine, and the persistence sync.
    """

    def __init__(
        self,
        *,
        state: RoomState | None = None,
        scheduler: Scheduler | None = None,
        container: ContainerMeasurer | None = None,
        transport: RoomTransport | None = None,
        draft_store: DraftStore | None = None,
        draft_id: str = "default",
        capture: PointerCapture | None = None,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        default_minutes: int = DEFAULT_GLOBAL_MINUTES,
    ) -> None:
        self.state = state or RoomState.empty(Settings(global_minutes=default_minutes))
        self.scheduler = scheduler or ManualScheduler()
        self.container = container or StaticContainer()
        self.geometry = GeometryTracker(self.container, self.scheduler, debounce=debounce)
        self.controller = InteractionController(
            self.state.hotspots, self.state.puzzles, self.geometry, capture=capture
        )
        self.play = PlayEngine(
            self.state.hotspots,
            self.state.puzzles,
            self.state.current_settings,
            self.scheduler,
        )
        self.sync = PersistenceSync(self.state, transport) if transport is not None else None
        self._default_minutes = default_minutes
        self._draft_store = draft_store
        self._draft_id = draft_id
        self._mode = Mode.BUILDER

        if self.state.settings.background_image:
            self.geometry.set_background_image(self.state.settings.background_image)
        self.state.puzzles.subscribe(self._autosave)
        self.state.hotspots.subscribe(self._autosave)

    @classmethod
    def from_settings(
        cls,
        settings: "RoomApiSettings",
        *,
        transport: RoomTransport | None = None,
        scheduler: Scheduler | None = None,
        container: ContainerMeasurer | None = None,
        draft_id: str = "default",
    ) -> "BuilderSession":
        """Build a session using the configured minutes and draft directory.

        When ``settings.draft_dir`` is set the session autosaves there; call
        :meth:`restore_draft` to pick up where the last session stopped.
        """

        draft_store = (
            FileDraftStore(settings.draft_dir) if settings.draft_dir is not None else None
        )
        return cls(
            scheduler=scheduler,
            container=container,
            transport=transport,
            draft_store=draft_store,
            draft_id=draft_id,
            default_minutes=settings.default_minutes,
        )

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def settings(self) -> Settings:
        return self.state.settings

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------
    def enter_play(self) -> PlayStatus:
        if self._mode is Mode.PLAY:
            return self.play.status
        self.controller.reset()
        self._mode = Mode.PLAY
        return self.play.enter()

    def enter_builder(self) -> None:
        if self._mode is Mode.BUILDER:
            return
        self.play.leave()
        self._mode = Mode.BUILDER

    def restart(self, *, confirm: Confirm) -> bool:
        if self._mode is not Mode.PLAY or not confirm("Restart escape room?"):
            return False
        self.play.restart()
        return True

    # ------------------------------------------------------------------
    # Builder operations
    # ------------------------------------------------------------------
    def handle_pointer(self, event: PointerEvent) -> InteractionState:
        """Route a pointer event to the controller while in builder mode."""

        if self._mode is not Mode.BUILDER:
            return self.controller.state
        return self.controller.handle(event)

    def set_global_minutes(self, minutes: int) -> None:
        self.state.settings = self.state.settings.with_minutes(minutes)
        self._autosave()

    def set_background_image(self, data_url: str | None) -> None:
        self.state.settings.background_image = data_url or None
        self.geometry.set_background_image(data_url)
        self._autosave()

    def save_puzzle(self, draft: PuzzleDraft, *, editing_id: str | None = None) -> Puzzle:
        return self.state.puzzles.create_or_update(draft, editing_id=editing_id)

    def delete_puzzle(self, puzzle_id: str, *, confirm: Confirm) -> bool:
        if puzzle_id not in self.state.puzzles or not confirm("Delete puzzle?"):
            return False
        return self.state.puzzles.delete(puzzle_id)

    def delete_hotspot(self, hotspot_id: str, *, confirm: Confirm) -> bool:
        if self.state.hotspots.get(hotspot_id) is None or not confirm("Delete hotspot?"):
            return False
        self.controller.forget(hotspot_id)
        return self.state.hotspots.delete(hotspot_id)

    def clear_all(self, *, confirm: Confirm) -> bool:
        if not confirm("Clear all puzzles?"):
            return False
        self.controller.reset()
        self.state.hotspots.clear()
        self.state.puzzles.clear()
        self.state.settings.global_minutes = self._default_minutes
        self._autosave()
        return True

    # ------------------------------------------------------------------
    # Play operations
    # ------------------------------------------------------------------
    def open_hotspot(self, hotspot_id: str) -> Puzzle | None:
        if self._mode is not Mode.PLAY:
            return None
        return self.play.open(hotspot_id)

    def submit_answer(self, hotspot_id: str, answer: Any) -> bool:
        if self._mode is not Mode.PLAY:
            return False
        return self.play.submit(hotspot_id, answer)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save(self, name: str | None = None) -> SaveRoomResponse:
        response = self._require_sync().save(name)
        self._autosave()
        return response

    def load(self, room_id: str) -> Settings:
        sync = self._require_sync()
        self.controller.reset()
        settings = sync.load(room_id)
        self.geometry.set_background_image(settings.background_image)
        self._autosave()
        return settings

    def delete_room(self, *, confirm: Confirm, room_id: str | None = None) -> bool:
        if not confirm("Delete this room?"):
            return False
        self._require_sync().delete(room_id)
        self._autosave()
        return True

    def restore_draft(self) -> bool:
        """Replace the graph with the autosaved draft, if one is configured."""

        if self._draft_store is None:
            return False
        draft = self._draft_store.load_or_default(
            self._draft_id,
            RoomDraft(settings=Settings(global_minutes=self._default_minutes)),
        )
        self.controller.reset()
        draft.apply_to(self.state)
        self.geometry.set_background_image(self.state.settings.background_image)
        return True

    def close(self) -> None:
        """Stop timers and observers owned by the session."""

        self.play.leave()
        self.controller.reset()
        self.geometry.close()

    def _require_sync(self) -> PersistenceSync:
        if self.sync is None:
            raise RuntimeError("this session has no room transport configured")
        return self.sync

    def _autosave(self) -> None:
        if self._draft_store is None:
            return
        self._draft_store.save(self._draft_id, RoomDraft.capture(self.state))


__all__ = ["BuilderSession", "Mode", "Confirm"]
