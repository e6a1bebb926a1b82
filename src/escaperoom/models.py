"""Data model for puzzles, hotspots, and room settings."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, List, Mapping, Sequence

from .errors import FieldIssue, ValidationError
from .geometry import clamp_pct

DEFAULT_GLOBAL_MINUTES = 5
DEFAULT_ROOM_NAME = "Untitled Room"


def new_client_id() -> str:
    """Return a short identifier for records created in the builder."""

    return uuid.uuid4().hex[:8]


class PuzzleType(str, Enum):
    """Correctness rule applied to a puzzle."""

    SHORT = "short"
    MCQ = "mcq"


def _coerce_puzzle_type(value: Any) -> PuzzleType:
    try:
        return PuzzleType(value)
    except ValueError as exc:
        raise ValueError(f"unknown puzzle type: {value!r}") from exc


def _coerce_choice(answer: Any) -> int | None:
    """Interpret a submitted mcq answer as an option index."""

    if isinstance(answer, bool):
        return None
    if isinstance(answer, int):
        return answer
    if isinstance(answer, str):
        stripped = answer.strip()
        try:
            return int(stripped)
        except ValueError:
            pass
        try:
            answer = float(stripped)
        except ValueError:
            return None
    if isinstance(answer, float):
        return int(answer) if answer.is_integer() else None
    return None


def normalise_answer(value: Any) -> str:
    """Trim and lowercase a short answer for comparison."""

    if value is None:
        return ""
    return str(value).strip().lower()


@dataclass(frozen=True)
class Puzzle:
    """A question with a multiple-choice or exact-match correctness rule.

    Exactly one of ``options``/``correct_index`` or ``expected_answer`` is
    meaningful, selected by ``type``. Instances are created through
    :meth:`PuzzleDraft.build`, which enforces that invariant.
    """

    id: str
    type: PuzzleType
    question: str
    options: Sequence[str] = field(default_factory=tuple)
    correct_index: int | None = None
    expected_answer: str = ""
    image_data_url: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", _coerce_puzzle_type(self.type))
        object.__setattr__(self, "options", tuple(self.options))

    def check_answer(self, answer: Any) -> bool:
        """Return ``True`` when ``answer`` satisfies this puzzle."""

        if self.type is PuzzleType.MCQ:
            choice = _coerce_choice(answer)
            return choice is not None and choice == self.correct_index
        expected = normalise_answer(self.expected_answer)
        return bool(expected) and normalise_answer(answer) == expected

    def content_key(self) -> tuple[Any, ...]:
        """Return the identity-free content of the puzzle for comparisons."""

        return (
            self.type.value,
            self.question,
            tuple(self.options),
            self.correct_index,
            self.expected_answer,
            self.image_data_url,
        )

    def to_payload(self) -> dict[str, Any]:
        """Return the wire representation used by the room API."""

        payload: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "question": self.question,
            "options": list(self.options),
            "correctIndex": self.correct_index,
            "expectedAnswer": self.expected_answer,
        }
        if self.image_data_url is not None:
            payload["imageDataUrl"] = self.image_data_url
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Puzzle":
        """Build a puzzle from its wire representation without re-validating."""

        puzzle_id = payload.get("id")
        if not isinstance(puzzle_id, str) or not puzzle_id:
            raise ValueError("puzzle payload requires a string id")

        options = payload.get("options") or []
        if isinstance(options, (str, bytes)):
            raise ValueError("puzzle options must be a list of strings")

        correct_index = payload.get("correctIndex")
        return cls(
            id=puzzle_id,
            type=_coerce_puzzle_type(payload.get("type")),
            question=str(payload.get("question") or ""),
            options=tuple(str(option) for option in options),
            correct_index=int(correct_index) if correct_index is not None else None,
            expected_answer=str(payload.get("expectedAnswer") or ""),
            image_data_url=payload.get("imageDataUrl") or None,
        )


@dataclass
class PuzzleDraft:
    """Editable form contents for creating or editing a puzzle."""

    type: PuzzleType = PuzzleType.SHORT
    question: str = ""
    options: List[str] = field(default_factory=lambda: ["", ""])
    correct_index: int | None = 0
    expected_answer: str = ""
    image_data_url: str | None = None

    def __post_init__(self) -> None:
        self.type = _coerce_puzzle_type(self.type)
        self.options = list(self.options)

    @classmethod
    def blank(cls) -> "PuzzleDraft":
        """Return the default form state."""

        return cls()

    @classmethod
    def from_puzzle(cls, puzzle: Puzzle) -> "PuzzleDraft":
        """Pre-fill the form with an existing puzzle for editing."""

        if puzzle.type is PuzzleType.MCQ:
            return cls(
                type=puzzle.type,
                question=puzzle.question,
                options=list(puzzle.options),
                correct_index=puzzle.correct_index if puzzle.correct_index is not None else 0,
                image_data_url=puzzle.image_data_url,
            )
        return cls(
            type=puzzle.type,
            question=puzzle.question,
            expected_answer=puzzle.expected_answer,
            image_data_url=puzzle.image_data_url,
        )

    def validate(self) -> List[FieldIssue]:
        """Return every deficient field; an empty list means the draft is valid."""

        issues: List[FieldIssue] = []
        if not self.question.strip():
            issues.append(FieldIssue("question", "Question required"))

        if self.type is PuzzleType.MCQ:
            filled = [option for option in self.options if option.strip()]
            if len(filled) < 2:
                issues.append(FieldIssue("options", "MCQ needs 2+ options"))
            index = self.correct_index
            if (
                index is None
                or index < 0
                or index >= len(self.options)
                or not self.options[index].strip()
            ):
                issues.append(FieldIssue("correctIndex", "Select correct option"))
        elif not self.expected_answer.strip():
            issues.append(FieldIssue("expectedAnswer", "Expected answer required"))

        return issues

    def build(self, puzzle_id: str) -> Puzzle:
        """Validate and normalise the draft into a :class:`Puzzle`.

        Raises:
            ValidationError: If any field required by the puzzle type is missing.
        """

        issues = self.validate()
        if issues:
            raise ValidationError(issues)

        is_mcq = self.type is PuzzleType.MCQ
        return Puzzle(
            id=puzzle_id,
            type=self.type,
            question=self.question.strip(),
            options=tuple(option.strip() for option in self.options) if is_mcq else ("",),
            correct_index=self.correct_index if is_mcq else None,
            expected_answer="" if is_mcq else self.expected_answer.strip(),
            image_data_url=self.image_data_url,
        )


@dataclass
class Hotspot:
    """A clickable point over the background, optionally linked to a puzzle.

    ``x_pct``/``y_pct`` are percentages of the rendered image content, not of
    the container it is drawn in.
    """

    id: str
    puzzle_id: str | None = None
    x_pct: float = 0.0
    y_pct: float = 0.0

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "puzzleId": self.puzzle_id,
            "xPct": self.x_pct,
            "yPct": self.y_pct,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Hotspot":
        hotspot_id = payload.get("id")
        if not isinstance(hotspot_id, str) or not hotspot_id:
            raise ValueError("hotspot payload requires a string id")
        puzzle_id = payload.get("puzzleId")
        return cls(
            id=hotspot_id,
            puzzle_id=str(puzzle_id) if puzzle_id else None,
            x_pct=clamp_pct(float(payload.get("xPct", 0.0))),
            y_pct=clamp_pct(float(payload.get("yPct", 0.0))),
        )


def _validate_minutes(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"global_minutes must be an int, got {type(value)!r}")
    if value < 1:
        raise ValueError("global_minutes must be a positive integer")
    return value


@dataclass
class Settings:
    """Room-wide settings edited in the builder.

    ``room_id`` is ``None`` until the room has been saved to the server.
    """

    global_minutes: int = DEFAULT_GLOBAL_MINUTES
    background_image: str | None = None
    room_id: str | None = None
    name: str = DEFAULT_ROOM_NAME

    def __post_init__(self) -> None:
        self.global_minutes = _validate_minutes(self.global_minutes)

    @property
    def is_saved(self) -> bool:
        return self.room_id is not None

    @property
    def total_seconds(self) -> int:
        return self.global_minutes * 60

    def with_minutes(self, minutes: int) -> "Settings":
        return replace(self, global_minutes=_validate_minutes(minutes))

    def to_payload(self) -> dict[str, Any]:
        return {
            "globalMinutes": self.global_minutes,
            "backgroundImage": self.background_image,
            "roomId": self.room_id,
        }

    @classmethod
    def from_payload(
        cls, payload: Mapping[str, Any], *, name: str | None = None
    ) -> "Settings":
        minutes = payload.get("globalMinutes", DEFAULT_GLOBAL_MINUTES)
        return cls(
            global_minutes=int(minutes),
            background_image=payload.get("backgroundImage") or None,
            room_id=payload.get("roomId") or None,
            name=name or DEFAULT_ROOM_NAME,
        )


def format_clock(seconds: int) -> str:
    """Format a countdown value as ``MM:SS``."""

    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


__all__ = [
    "DEFAULT_GLOBAL_MINUTES",
    "DEFAULT_ROOM_NAME",
    "PuzzleType",
    "Puzzle",
    "PuzzleDraft",
    "Hotspot",
    "Settings",
    "format_clock",
    "new_client_id",
    "normalise_answer",
]
