"""Exception hierarchy shared by the builder, play engine, and persistence layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple


class EscapeRoomError(RuntimeError):
    """Base exception for all escape room failures."""


@dataclass(frozen=True)
class FieldIssue:
    """Describe a single deficient field on a puzzle draft."""

    field: str
    message: str


class ValidationError(EscapeRoomError, ValueError):
    """Raised when a puzzle draft is missing fields required by its type.

    The store is never mutated when this is raised, so callers can surface the
    issues inline and let the author correct the form.
    """

    def __init__(self, issues: Iterable[FieldIssue]) -> None:
        self.issues: Tuple[FieldIssue, ...] = tuple(issues)
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in self.issues)
        super().__init__(summary or "invalid puzzle")

    @property
    def fields(self) -> Tuple[str, ...]:
        """Return the names of the deficient fields in reporting order."""

        return tuple(issue.field for issue in self.issues)


class NotFoundError(EscapeRoomError, KeyError):
    """Raised when a room identifier does not resolve to a stored room."""

    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room '{room_id}' does not exist")
        self.room_id = room_id

    def __str__(self) -> str:
        return str(self.args[0])


class TransportError(EscapeRoomError):
    """Raised when the network or server fails during save, load, or delete."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ReferentialError(EscapeRoomError, AssertionError):
    """Raised when the puzzle/hotspot graph contains a dangling reference."""


class UnknownHotspotError(EscapeRoomError, KeyError):
    """Raised when an operation names a hotspot that is not in the store."""

    def __init__(self, hotspot_id: str) -> None:
        super().__init__(f"Hotspot '{hotspot_id}' does not exist")
        self.hotspot_id = hotspot_id

    def __str__(self) -> str:
        return str(self.args[0])


class UnknownPuzzleError(EscapeRoomError, KeyError):
    """Raised when an operation names a puzzle that is not in the store."""

    def __init__(self, puzzle_id: str) -> None:
        super().__init__(f"Puzzle '{puzzle_id}' does not exist")
        self.puzzle_id = puzzle_id

    def __str__(self) -> str:
        return str(self.args[0])


class RequestInFlightError(EscapeRoomError):
    """Raised when a save, load, or delete is issued while another is pending."""


__all__ = [
    "EscapeRoomError",
    "FieldIssue",
    "ValidationError",
    "NotFoundError",
    "TransportError",
    "ReferentialError",
    "UnknownHotspotError",
    "UnknownPuzzleError",
    "RequestInFlightError",
]
