"""Pointer-driven state machine for creating, dragging, and linking hotspots.

The controller consumes a runtime-neutral :class:`PointerEvent` stream and
translates it into :class:`~escaperoom.stores.HotspotStore` and
:class:`~escaperoom.stores.PuzzleStore` mutations. It keeps no data of its
own beyond the current state tag and the drag offset.

States::

    Idle ──click canvas──────────▶ PendingAssign (new hotspot)
    Idle ──click hotspot─────────▶ PendingAssign (existing hotspot)
    Idle ──pointer-down hotspot──▶ Dragging
    PendingAssign ──link/create──▶ Idle
    PendingAssign ──click away───▶ Idle (abandoned hotspot removed)
    Dragging ──pointer-move──────▶ Dragging (position updated live)
    Dragging ──pointer-up────────▶ Idle
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Set, Union

from .errors import UnknownHotspotError
from .geometry import GeometryTracker, point_to_container_pct
from .models import Puzzle, PuzzleDraft
from .stores import HotspotStore, PuzzleStore

logger = logging.getLogger(__name__)


class PointerKind(str, Enum):
    DOWN = "down"
    MOVE = "move"
    UP = "up"
    CLICK = "click"


class PointerTarget(str, Enum):
    """What the pointer was over when the event fired."""

    CANVAS = "canvas"
    HOTSPOT = "hotspot"
    POPUP = "popup"
    OUTSIDE = "outside"


@dataclass(frozen=True)
class PointerEvent:
    """A pointer event with pixel coordinates relative to the container."""

    kind: PointerKind
    x: float
    y: float
    target: PointerTarget = PointerTarget.CANVAS
    hotspot_id: str | None = None
    pointer_id: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", PointerKind(self.kind))
        object.__setattr__(self, "target", PointerTarget(self.target))
        if self.target is PointerTarget.HOTSPOT and not self.hotspot_id:
            raise ValueError("hotspot events must carry a hotspot_id")


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class PendingAssign:
    """A hotspot awaiting a puzzle link, shown with an inline popup."""

    hotspot_id: str
    created: bool = False


@dataclass(frozen=True)
class Dragging:
    """A hotspot following the pointer.

    ``offset_x``/``offset_y`` are the distance, in container percentages,
    between the pointer and the hotspot centre when the drag started.
    """

    hotspot_id: str
    offset_x: float
    offset_y: float
    pointer_id: int


InteractionState = Union[Idle, PendingAssign, Dragging]


class PointerCapture(ABC):
    """Capability for routing a pointer's events to the controller during a drag."""

    @abstractmethod
    def acquire(self, pointer_id: int) -> None:
        """Start delivering ``pointer_id`` events regardless of cursor position."""

    @abstractmethod
    def release(self, pointer_id: int) -> None:
        """Stop the capture started by :meth:`acquire`."""


class TrackingPointerCapture(PointerCapture):
    """Capture implementation that only records which pointers are held."""

    def __init__(self) -> None:
        self.active: Set[int] = set()

    def acquire(self, pointer_id: int) -> None:
        self.active.add(pointer_id)

    def release(self, pointer_id: int) -> None:
        self.active.discard(pointer_id)


class InteractionController:
    """Builder-mode interaction state machine."""

    def __init__(
        self,
        hotspots: HotspotStore,
        puzzles: PuzzleStore,
        geometry: GeometryTracker,
        *,
        capture: PointerCapture | None = None,
    ) -> None:
        self._hotspots = hotspots
        self._puzzles = puzzles
        self._geometry = geometry
        self._capture = capture or TrackingPointerCapture()
        self._state: InteractionState = Idle()

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def pending_hotspot_id(self) -> str | None:
        if isinstance(self._state, PendingAssign):
            return self._state.hotspot_id
        return None

    def handle(self, event: PointerEvent) -> InteractionState:
        """Apply ``event`` and return the resulting state."""

        if event.kind is PointerKind.CLICK:
            self._on_click(event)
        elif event.kind is PointerKind.DOWN:
            self._on_pointer_down(event)
        elif event.kind is PointerKind.MOVE:
            self._on_pointer_move(event)
        elif event.kind is PointerKind.UP:
            self._on_pointer_up(event)
        return self._state

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------
    def assign(self, puzzle_id: str) -> None:
        """Link the pending hotspot to an existing puzzle and return to idle."""

        pending = self._require_pending()
        self._hotspots.link(pending.hotspot_id, puzzle_id)
        self._state = Idle()

    def create_and_link(self, draft: PuzzleDraft) -> Puzzle:
        """Create a puzzle from the inline form and link the pending hotspot.

        Raises:
            ValidationError: If the draft is incomplete. The controller stays in
                ``PendingAssign`` so the author can fix the form.
        """

        pending = self._require_pending()
        puzzle = self._puzzles.create_or_update(draft)
        self._hotspots.link(pending.hotspot_id, puzzle.id)
        self._state = Idle()
        return puzzle

    def delete_pending(self) -> None:
        """Remove the pending hotspot after the caller confirmed the delete."""

        pending = self._require_pending()
        self._hotspots.delete(pending.hotspot_id)
        self._state = Idle()

    def forget(self, hotspot_id: str) -> None:
        """Drop any state that refers to a hotspot deleted elsewhere."""

        state = self._state
        if isinstance(state, Dragging) and state.hotspot_id == hotspot_id:
            self._capture.release(state.pointer_id)
            self._state = Idle()
        elif isinstance(state, PendingAssign) and state.hotspot_id == hotspot_id:
            self._state = Idle()

    def reset(self) -> None:
        """Return to idle, releasing any held pointer.

        A pending hotspot is abandoned exactly as a click-away would abandon
        it, so a freshly created or unlinked hotspot does not survive.
        """

        state = self._state
        if isinstance(state, Dragging):
            self._capture.release(state.pointer_id)
        elif isinstance(state, PendingAssign):
            self._abandon(state)
        self._state = Idle()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def _on_click(self, event: PointerEvent) -> None:
        state = self._state
        if isinstance(state, Dragging):
            return

        if isinstance(state, PendingAssign):
            if event.target is PointerTarget.POPUP:
                return
            if event.target is PointerTarget.HOTSPOT and event.hotspot_id == state.hotspot_id:
                return
            self._abandon(state)
            if event.target is PointerTarget.HOTSPOT and event.hotspot_id in self._hotspots.ids():
                self._state = PendingAssign(event.hotspot_id)
            return

        if event.target is PointerTarget.HOTSPOT:
            if self._hotspots.get(event.hotspot_id or "") is not None:
                self._state = PendingAssign(event.hotspot_id or "")
            return

        if event.target is PointerTarget.CANVAS:
            x_pct, y_pct = self._image_point(event)
            hotspot_id = self._hotspots.create(x_pct, y_pct)
            logger.debug("Created hotspot %s at (%.2f, %.2f)", hotspot_id, x_pct, y_pct)
            self._state = PendingAssign(hotspot_id, created=True)

    def _on_pointer_down(self, event: PointerEvent) -> None:
        if not isinstance(self._state, Idle):
            return
        if event.target is not PointerTarget.HOTSPOT:
            return
        hotspot = self._hotspots.get(event.hotspot_id or "")
        if hotspot is None:
            return

        pointer_x, pointer_y = self._container_point(event)
        centre_x, centre_y = self._geometry.dimensions.to_container(
            hotspot.x_pct, hotspot.y_pct
        )
        self._capture.acquire(event.pointer_id)
        self._state = Dragging(
            hotspot_id=hotspot.id,
            offset_x=pointer_x - centre_x,
            offset_y=pointer_y - centre_y,
            pointer_id=event.pointer_id,
        )

    def _on_pointer_move(self, event: PointerEvent) -> None:
        state = self._state
        if not isinstance(state, Dragging) or event.pointer_id != state.pointer_id:
            return
        pointer_x, pointer_y = self._container_point(event)
        x_pct, y_pct = self._geometry.dimensions.to_image(
            pointer_x - state.offset_x, pointer_y - state.offset_y
        )
        self._hotspots.move(state.hotspot_id, x_pct, y_pct)

    def _on_pointer_up(self, event: PointerEvent) -> None:
        state = self._state
        if not isinstance(state, Dragging) or event.pointer_id != state.pointer_id:
            return
        self._capture.release(state.pointer_id)
        self._state = Idle()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _abandon(self, state: PendingAssign) -> None:
        """Leave ``PendingAssign``, removing the hotspot if it was never linked."""

        hotspot = self._hotspots.get(state.hotspot_id)
        if hotspot is not None and (state.created or hotspot.puzzle_id is None):
            self._hotspots.delete(state.hotspot_id)
            logger.debug("Discarded abandoned hotspot %s", state.hotspot_id)
        self._state = Idle()

    def _require_pending(self) -> PendingAssign:
        state = self._state
        if not isinstance(state, PendingAssign):
            raise RuntimeError("no hotspot is awaiting a puzzle link")
        if self._hotspots.get(state.hotspot_id) is None:
            self._state = Idle()
            raise UnknownHotspotError(state.hotspot_id)
        return state

    def _container_point(self, event: PointerEvent) -> tuple[float, float]:
        width, height = self._geometry.container.measure()
        return point_to_container_pct(event.x, event.y, width, height)

    def _image_point(self, event: PointerEvent) -> tuple[float, float]:
        x_pct, y_pct = self._container_point(event)
        return self._geometry.dimensions.to_image(x_pct, y_pct)


__all__ = [
    "PointerKind",
    "PointerTarget",
    "PointerEvent",
    "Idle",
    "PendingAssign",
    "Dragging",
    "InteractionState",
    "PointerCapture",
    "TrackingPointerCapture",
    "InteractionController",
]
