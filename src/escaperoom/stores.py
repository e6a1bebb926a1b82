"""In-memory ordered collections of hotspots and puzzles."""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, List, Sequence, Tuple

from .errors import ReferentialError, UnknownHotspotError, UnknownPuzzleError
from .geometry import clamp_pct
from .models import Hotspot, Puzzle, PuzzleDraft, new_client_id

Listener = Callable[[], None]


class _ObservableStore:
    """Shared change-notification plumbing for the two stores."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every mutation; return an unsubscriber."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


class PuzzleStore(_ObservableStore):
    """Ordered puzzles with type-specific validation on create and edit."""

    def __init__(
        self,
        puzzles: Iterable[Puzzle] = (),
        *,
        id_factory: Callable[[], str] = new_client_id,
    ) -> None:
        super().__init__()
        self._puzzles: List[Puzzle] = list(puzzles)
        self._id_factory = id_factory
        self._hotspots: HotspotStore | None = None

    def bind_hotspots(self, hotspots: "HotspotStore") -> None:
        """Attach the hotspot store so deletes can detach references."""

        self._hotspots = hotspots
        hotspots._puzzles = self

    def get(self, puzzle_id: str) -> Puzzle | None:
        for puzzle in self._puzzles:
            if puzzle.id == puzzle_id:
                return puzzle
        return None

    def require(self, puzzle_id: str) -> Puzzle:
        puzzle = self.get(puzzle_id)
        if puzzle is None:
            raise UnknownPuzzleError(puzzle_id)
        return puzzle

    def index_of(self, puzzle_id: str) -> int:
        for index, puzzle in enumerate(self._puzzles):
            if puzzle.id == puzzle_id:
                return index
        return -1

    def create_or_update(self, draft: PuzzleDraft, *, editing_id: str | None = None) -> Puzzle:
        """Validate ``draft`` and store it.

        A fresh id is assigned when ``editing_id`` is ``None``; otherwise the
        existing puzzle is replaced in place, keeping its position.

        Raises:
            ValidationError: If the draft is missing fields for its type. The
                store is left untouched.
            UnknownPuzzleError: If ``editing_id`` does not name a puzzle.
        """

        if editing_id is None:
            puzzle = draft.build(self._id_factory())
            self._puzzles.append(puzzle)
        else:
            index = self.index_of(editing_id)
            if index < 0:
                raise UnknownPuzzleError(editing_id)
            puzzle = draft.build(editing_id)
            self._puzzles[index] = puzzle
        self._notify()
        return puzzle

    def delete(self, puzzle_id: str) -> bool:
        """Detach every hotspot linked to ``puzzle_id`` and remove the puzzle.

        Returns:
            ``True`` if a puzzle was removed.
        """

        index = self.index_of(puzzle_id)
        if index < 0:
            return False
        if self._hotspots is not None:
            self._hotspots.detach_puzzle(puzzle_id)
        del self._puzzles[index]
        self._notify()
        return True

    def move_up(self, index: int) -> None:
        """Swap the puzzle at ``index`` with its predecessor."""

        if index <= 0 or index >= len(self._puzzles):
            return
        self._puzzles[index - 1], self._puzzles[index] = (
            self._puzzles[index],
            self._puzzles[index - 1],
        )
        self._notify()

    def move_down(self, index: int) -> None:
        """Swap the puzzle at ``index`` with its successor."""

        if index < 0 or index >= len(self._puzzles) - 1:
            return
        self._puzzles[index], self._puzzles[index + 1] = (
            self._puzzles[index + 1],
            self._puzzles[index],
        )
        self._notify()

    def replace_all(self, puzzles: Iterable[Puzzle]) -> None:
        """Swap in a complete puzzle list, as done after loading a room."""

        self._puzzles = list(puzzles)
        self._notify()

    def clear(self) -> None:
        self.replace_all(())

    def ids(self) -> Tuple[str, ...]:
        return tuple(puzzle.id for puzzle in self._puzzles)

    def snapshot(self) -> Tuple[Puzzle, ...]:
        return tuple(self._puzzles)

    def __len__(self) -> int:
        return len(self._puzzles)

    def __iter__(self) -> Iterator[Puzzle]:
        return iter(tuple(self._puzzles))

    def __contains__(self, puzzle_id: object) -> bool:
        return any(puzzle.id == puzzle_id for puzzle in self._puzzles)


class HotspotStore(_ObservableStore):
    """Ordered hotspots, each optionally linked to a puzzle."""

    def __init__(
        self,
        hotspots: Iterable[Hotspot] = (),
        *,
        id_factory: Callable[[], str] = new_client_id,
    ) -> None:
        super().__init__()
        self._hotspots: List[Hotspot] = list(hotspots)
        self._id_factory = id_factory
        self._puzzles: PuzzleStore | None = None

    def get(self, hotspot_id: str) -> Hotspot | None:
        for hotspot in self._hotspots:
            if hotspot.id == hotspot_id:
                return hotspot
        return None

    def require(self, hotspot_id: str) -> Hotspot:
        hotspot = self.get(hotspot_id)
        if hotspot is None:
            raise UnknownHotspotError(hotspot_id)
        return hotspot

    def index_of(self, hotspot_id: str) -> int:
        for index, hotspot in enumerate(self._hotspots):
            if hotspot.id == hotspot_id:
                return index
        return -1

    def create(self, x_pct: float, y_pct: float) -> str:
        """Append an unlinked hotspot at the given image position."""

        hotspot = Hotspot(
            id=self._id_factory(),
            puzzle_id=None,
            x_pct=clamp_pct(x_pct),
            y_pct=clamp_pct(y_pct),
        )
        self._hotspots.append(hotspot)
        self._notify()
        return hotspot.id

    def move(self, hotspot_id: str, x_pct: float, y_pct: float) -> None:
        """Move a hotspot, clamping both axes to ``[0, 100]``."""

        hotspot = self.get(hotspot_id)
        if hotspot is None:
            return
        hotspot.x_pct = clamp_pct(x_pct)
        hotspot.y_pct = clamp_pct(y_pct)
        self._notify()

    def delete(self, hotspot_id: str) -> bool:
        """Remove a hotspot; its linked puzzle is left in place."""

        index = self.index_of(hotspot_id)
        if index < 0:
            return False
        del self._hotspots[index]
        self._notify()
        return True

    def link(self, hotspot_id: str, puzzle_id: str | None) -> None:
        """Point a hotspot at ``puzzle_id``, replacing any previous link.

        Raises:
            UnknownHotspotError: If the hotspot does not exist.
            UnknownPuzzleError: If a puzzle store is bound and does not
                contain ``puzzle_id``.
        """

        hotspot = self.require(hotspot_id)
        if (
            puzzle_id is not None
            and self._puzzles is not None
            and puzzle_id not in self._puzzles
        ):
            raise UnknownPuzzleError(puzzle_id)
        hotspot.puzzle_id = puzzle_id
        self._notify()

    def detach_puzzle(self, puzzle_id: str) -> List[str]:
        """Null out every link to ``puzzle_id``; return the affected hotspot ids."""

        detached: List[str] = []
        for hotspot in self._hotspots:
            if hotspot.puzzle_id == puzzle_id:
                hotspot.puzzle_id = None
                detached.append(hotspot.id)
        if detached:
            self._notify()
        return detached

    def linked(self) -> Tuple[Hotspot, ...]:
        """Return the hotspots that reference a puzzle."""

        return tuple(hotspot for hotspot in self._hotspots if hotspot.puzzle_id)

    def replace_all(self, hotspots: Iterable[Hotspot]) -> None:
        self._hotspots = list(hotspots)
        self._notify()

    def clear(self) -> None:
        self.replace_all(())

    def ids(self) -> Tuple[str, ...]:
        return tuple(hotspot.id for hotspot in self._hotspots)

    def snapshot(self) -> Tuple[Hotspot, ...]:
        """Return copies of the hotspots so callers cannot mutate the store."""

        return tuple(
            Hotspot(h.id, h.puzzle_id, h.x_pct, h.y_pct) for h in self._hotspots
        )

    def __len__(self) -> int:
        return len(self._hotspots)

    def __iter__(self) -> Iterator[Hotspot]:
        return iter(tuple(self._hotspots))


def check_references(hotspots: Sequence[Hotspot], puzzle_ids: Iterable[str]) -> None:
    """Raise :class:`ReferentialError` if any hotspot links to a missing puzzle."""

    known = set(puzzle_ids)
    dangling = [
        hotspot.id
        for hotspot in hotspots
        if hotspot.puzzle_id is not None and hotspot.puzzle_id not in known
    ]
    if dangling:
        raise ReferentialError(
            "hotspots reference missing puzzles: " + ", ".join(dangling)
        )


__all__ = ["PuzzleStore", "HotspotStore", "check_references"]
