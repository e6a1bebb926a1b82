"""Play-mode countdown, completion tracking, and win detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

from .errors import UnknownHotspotError
from .models import Puzzle, Settings
from .scheduling import ScheduledHandle, Scheduler
from .stores import HotspotStore, PuzzleStore

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.0


class PlayStatus(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    WON = "won"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PlaySnapshot:
    """Read-only view of the engine used for rendering."""

    status: PlayStatus
    seconds_left: int
    completed: Tuple[bool, ...]

    @property
    def is_over(self) -> bool:
        return self.status in (PlayStatus.WON, PlayStatus.TIMED_OUT)


class PlayEngine:
    """Countdown and completion state machine for play mode.

    Completion is tracked per hotspot id and exposed as a tuple aligned with
    the current hotspot order. Once a hotspot is marked complete it stays
    complete until :meth:`restart`.
    """

    def __init__(
        self,
        hotspots: HotspotStore,
        puzzles: PuzzleStore,
        settings_provider: Callable[[], Settings],
        scheduler: Scheduler,
    ) -> None:
        self._hotspots = hotspots
        self._puzzles = puzzles
        self._settings = settings_provider
        self._scheduler = scheduler
        self._status = PlayStatus.STOPPED
        self._seconds_left = settings_provider().total_seconds
        self._completed: Dict[str, bool] = {}
        self._tick_handle: ScheduledHandle | None = None
        self._budget: int | None = None
        self._listeners: List[Callable[[PlaySnapshot], None]] = []
        hotspots.subscribe(self._sync_completion)
        self._sync_completion()

    @property
    def status(self) -> PlayStatus:
        return self._status

    @property
    def seconds_left(self) -> int:
        return self._seconds_left

    @property
    def completed(self) -> Tuple[bool, ...]:
        """Completion flags aligned 1:1 with the hotspot order."""

        return tuple(self._completed.get(h.id, False) for h in self._hotspots)

    @property
    def is_ticking(self) -> bool:
        return self._tick_handle is not None

    def snapshot(self) -> PlaySnapshot:
        return PlaySnapshot(self._status, self._seconds_left, self.completed)

    def on_change(self, callback: Callable[[PlaySnapshot], None]) -> None:
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def enter(self) -> PlayStatus:
        """Enter play mode, resuming the countdown left by :meth:`leave`.

        A full countdown is started on the first entry, after the time ran
        out, or when ``globalMinutes`` changed since the countdown began.
        Completion flags gathered in an earlier session are kept; if they
        already satisfy the win condition the engine goes straight to ``WON``.
        """

        total = self._settings().total_seconds
        if self._budget != total or self._seconds_left <= 0:
            self._budget = total
            self._seconds_left = total
        self._status = PlayStatus.RUNNING
        self._start_ticking()
        logger.debug("Play started with %s seconds", self._seconds_left)
        self._check_win()
        self._emit()
        return self._status

    def leave(self) -> None:
        """Return to the builder: stop the tick, keep time and completion."""

        self._stop_ticking()
        self._status = PlayStatus.STOPPED
        self._emit()

    def restart(self) -> PlayStatus:
        """Reset the countdown and clear every completion flag."""

        self._completed = {hotspot.id: False for hotspot in self._hotspots}
        self._budget = self._settings().total_seconds
        self._seconds_left = self._budget
        self._status = PlayStatus.RUNNING
        self._start_ticking()
        self._emit()
        return self._status

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------
    def open(self, hotspot_id: str) -> Puzzle | None:
        """Return the puzzle behind ``hotspot_id`` if it can be attempted now.

        Returns ``None`` for unlinked hotspots and when time has run out.
        """

        hotspot = self._hotspots.get(hotspot_id)
        if hotspot is None:
            raise UnknownHotspotError(hotspot_id)
        if self._status is not PlayStatus.RUNNING or self._seconds_left <= 0:
            return None
        if hotspot.puzzle_id is None:
            return None
        return self._puzzles.get(hotspot.puzzle_id)

    def submit(self, hotspot_id: str, answer: Any) -> bool:
        """Check ``answer`` against the hotspot's puzzle.

        A correct answer marks the hotspot complete and re-evaluates the win
        condition. Submissions outside a running session are rejected.

        Returns:
            ``True`` when the answer was correct.
        """

        hotspot = self._hotspots.get(hotspot_id)
        if hotspot is None:
            raise UnknownHotspotError(hotspot_id)
        if self._status is not PlayStatus.RUNNING:
            return False
        if hotspot.puzzle_id is None:
            return False
        puzzle = self._puzzles.get(hotspot.puzzle_id)
        if puzzle is None or not puzzle.check_answer(answer):
            return False

        if not self._completed.get(hotspot_id, False):
            self._completed[hotspot_id] = True
            self._check_win()
            self._emit()
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _check_win(self) -> None:
        linked = self._hotspots.linked()
        if not linked:
            return
        if all(self._completed.get(hotspot.id, False) for hotspot in linked):
            self._status = PlayStatus.WON
            self._stop_ticking()
            logger.info("Room escaped with %s seconds left", self._seconds_left)

    def _tick(self) -> None:
        if self._status is not PlayStatus.RUNNING:
            self._stop_ticking()
            return
        self._seconds_left = max(0, self._seconds_left - 1)
        if self._seconds_left == 0:
            self._status = PlayStatus.TIMED_OUT
            self._stop_ticking()
            logger.info("Play timed out")
        self._emit()

    def _start_ticking(self) -> None:
        self._stop_ticking()
        if self._status is PlayStatus.RUNNING:
            self._tick_handle = self._scheduler.call_repeating(TICK_SECONDS, self._tick)

    def _stop_ticking(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _sync_completion(self) -> None:
        current = set(self._hotspots.ids())
        for stale in [key for key in self._completed if key not in current]:
            del self._completed[stale]
        for hotspot_id in current:
            self._completed.setdefault(hotspot_id, False)

    def _emit(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)


__all__ = ["PlayEngine", "PlayStatus", "PlaySnapshot", "TICK_SECONDS"]
