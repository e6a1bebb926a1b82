"""Tests for puzzle validation and the hotspot/puzzle stores."""

from __future__ import annotations

from typing import Callable

import pytest

from escaperoom.errors import (
    ReferentialError,
    UnknownHotspotError,
    UnknownPuzzleError,
    ValidationError,
)
from escaperoom.models import Hotspot, PuzzleDraft, PuzzleType, Settings, format_clock
from escaperoom.state import RoomState
from escaperoom.stores import check_references


def _mcq(question: str = "Who?", options=("Butler", "Chef"), correct: int = 0) -> PuzzleDraft:
    return PuzzleDraft(
        type=PuzzleType.MCQ, question=question, options=list(options), correct_index=correct
    )


def _short(question: str = "Year?", answer: str = "1985") -> PuzzleDraft:
    return PuzzleDraft(type=PuzzleType.SHORT, question=question, expected_answer=answer)


@pytest.fixture
def state(sequential_ids: Callable[[], str]) -> RoomState:
    return RoomState.empty(id_factory=sequential_ids)


def test_short_puzzle_requires_question_and_answer(state: RoomState) -> None:
    with pytest.raises(ValidationError) as excinfo:
        state.puzzles.create_or_update(PuzzleDraft(type=PuzzleType.SHORT))

    assert excinfo.value.fields == ("question", "expectedAnswer")
    assert len(state.puzzles) == 0


def test_mcq_requires_two_options_and_valid_choice(state: RoomState) -> None:
    draft = _mcq(options=["Butler", "  "], correct=1)

    with pytest.raises(ValidationError) as excinfo:
        state.puzzles.create_or_update(draft)

    assert excinfo.value.fields == ("options", "correctIndex")
    messages = [issue.message for issue in excinfo.value.issues]
    assert messages == ["MCQ needs 2+ options", "Select correct option"]
    assert len(state.puzzles) == 0


def test_mcq_rejects_out_of_range_choice(state: RoomState) -> None:
    with pytest.raises(ValidationError) as excinfo:
        state.puzzles.create_or_update(_mcq(correct=5))
    assert excinfo.value.fields == ("correctIndex",)


def test_build_normalises_by_type(state: RoomState) -> None:
    short = state.puzzles.create_or_update(_short(question="  Year? ", answer=" 1985 "))
    mcq = state.puzzles.create_or_update(_mcq(options=[" Butler ", "Chef"]))

    assert short.question == "Year?"
    assert short.expected_answer == "1985"
    assert short.options == ("",)
    assert short.correct_index is None
    assert mcq.options == ("Butler", "Chef")
    assert mcq.expected_answer == ""
    assert state.puzzles.ids() == ("id-1", "id-2")


def test_edit_keeps_id_and_position(state: RoomState) -> None:
    first = state.puzzles.create_or_update(_short())
    state.puzzles.create_or_update(_mcq())

    edited = state.puzzles.create_or_update(
        _short(question="New question", answer="2000"),
        editing_id=first.id,
    )

    assert edited.id == first.id
    assert state.puzzles.index_of(first.id) == 0
    assert state.puzzles.require(first.id).expected_answer == "2000"


def test_edit_of_unknown_puzzle_fails(state: RoomState) -> None:
    with pytest.raises(UnknownPuzzleError):
        state.puzzles.create_or_update(_short(), editing_id="missing")


def test_draft_round_trip_from_puzzle(state: RoomState) -> None:
    mcq = state.puzzles.create_or_update(_mcq(correct=1))
    draft = PuzzleDraft.from_puzzle(mcq)

    assert draft.type is PuzzleType.MCQ
    assert draft.options == ["Butler", "Chef"]
    assert draft.correct_index == 1
    assert PuzzleDraft.blank() == PuzzleDraft()


def test_deleting_puzzle_detaches_hotspots(state: RoomState) -> None:
    puzzle = state.puzzles.create_or_update(_short())
    first = state.hotspots.create(10, 10)
    second = state.hotspots.create(20, 20)
    state.hotspots.link(first, puzzle.id)
    state.hotspots.link(second, puzzle.id)

    assert state.puzzles.delete(puzzle.id) is True

    assert len(state.hotspots) == 2
    assert all(hotspot.puzzle_id is None for hotspot in state.hotspots)
    check_references(state.hotspots.snapshot(), state.puzzles.ids())


def test_deleting_hotspot_keeps_puzzle(state: RoomState) -> None:
    puzzle = state.puzzles.create_or_update(_short())
    hotspot_id = state.hotspots.create(10, 10)
    state.hotspots.link(hotspot_id, puzzle.id)

    assert state.hotspots.delete(hotspot_id) is True
    assert state.hotspots.delete(hotspot_id) is False
    assert puzzle.id in state.puzzles


def test_link_to_unknown_puzzle_fails_loudly(state: RoomState) -> None:
    hotspot_id = state.hotspots.create(10, 10)

    with pytest.raises(UnknownPuzzleError):
        state.hotspots.link(hotspot_id, "ghost")
    with pytest.raises(UnknownHotspotError):
        state.hotspots.link("ghost", None)
    assert state.hotspots.require(hotspot_id).puzzle_id is None


def test_relinking_replaces_previous_link(state: RoomState) -> None:
    first = state.puzzles.create_or_update(_short())
    second = state.puzzles.create_or_update(_mcq())
    hotspot_id = state.hotspots.create(50, 50)

    state.hotspots.link(hotspot_id, first.id)
    state.hotspots.link(hotspot_id, second.id)

    assert state.hotspots.require(hotspot_id).puzzle_id == second.id


def test_create_and_move_clamp_to_image_bounds(state: RoomState) -> None:
    hotspot_id = state.hotspots.create(-5, 140)
    created = state.hotspots.require(hotspot_id)
    assert (created.x_pct, created.y_pct) == (0.0, 100.0)

    state.hotspots.move(hotspot_id, 150, -20)
    hotspot = state.hotspots.require(hotspot_id)
    assert (hotspot.x_pct, hotspot.y_pct) == (100.0, 0.0)

    state.hotspots.move("missing", 10, 10)


def test_reorder_is_noop_at_edges(state: RoomState) -> None:
    a = state.puzzles.create_or_update(_short(question="A"))
    b = state.puzzles.create_or_update(_short(question="B"))
    c = state.puzzles.create_or_update(_short(question="C"))

    state.puzzles.move_up(0)
    state.puzzles.move_down(2)
    assert state.puzzles.ids() == (a.id, b.id, c.id)

    state.puzzles.move_down(0)
    assert state.puzzles.ids() == (b.id, a.id, c.id)

    state.puzzles.move_up(2)
    assert state.puzzles.ids() == (b.id, c.id, a.id)


def test_snapshot_returns_copies(state: RoomState) -> None:
    hotspot_id = state.hotspots.create(10, 10)
    copy = state.hotspots.snapshot()[0]
    copy.x_pct = 99

    assert state.hotspots.require(hotspot_id).x_pct == 10


def test_store_notifies_subscribers(state: RoomState) -> None:
    calls: list[str] = []
    unsubscribe = state.hotspots.subscribe(lambda: calls.append("changed"))

    hotspot_id = state.hotspots.create(1, 1)
    state.hotspots.move(hotspot_id, 2, 2)
    unsubscribe()
    state.hotspots.delete(hotspot_id)

    assert calls == ["changed", "changed"]


def test_check_references_reports_dangling_links() -> None:
    hotspots = [Hotspot("h1", "p1", 10, 10), Hotspot("h2", "ghost", 20, 20)]

    with pytest.raises(ReferentialError, match="h2"):
        check_references(hotspots, ["p1"])


def test_answers_are_checked_by_type(state: RoomState) -> None:
    short = state.puzzles.create_or_update(_short(answer="Paris"))
    mcq = state.puzzles.create_or_update(_mcq(correct=1))

    assert short.check_answer("  pARIS ") is True
    assert short.check_answer("London") is False
    assert mcq.check_answer(1) is True
    assert mcq.check_answer("1") is True
    assert mcq.check_answer(1.0) is True
    assert mcq.check_answer(" 1.0 ") is True
    assert mcq.check_answer("1.5") is False
    assert mcq.check_answer("nan") is False
    assert mcq.check_answer(0) is False
    assert mcq.check_answer("Chef") is False


def test_settings_validation_and_clock() -> None:
    settings = Settings()
    assert settings.total_seconds == 300
    assert settings.with_minutes(45).total_seconds == 2700

    with pytest.raises(ValueError):
        settings.with_minutes(0)
    with pytest.raises(TypeError):
        Settings(global_minutes="5")  # type: ignore[arg-type]

    assert format_clock(300) == "05:00"
    assert format_clock(61) == "01:01"
    assert format_clock(-3) == "00:00"
