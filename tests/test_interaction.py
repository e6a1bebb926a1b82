"""Tests for the builder pointer state machine."""

from __future__ import annotations

from typing import Callable

import pytest

from escaperoom.errors import ValidationError
from escaperoom.geometry import GeometryTracker, StaticContainer
from escaperoom.interaction import (
    Dragging,
    Idle,
    InteractionController,
    PendingAssign,
    PointerEvent,
    PointerKind,
    PointerTarget,
    TrackingPointerCapture,
)
from escaperoom.models import PuzzleDraft, PuzzleType
from escaperoom.scheduling import ManualScheduler
from escaperoom.state import RoomState


class _Builder:
    def __init__(self, id_factory: Callable[[], str]) -> None:
        self.state = RoomState.empty(id_factory=id_factory)
        self.scheduler = ManualScheduler()
        # 1000x500 container around a square image: 25% letterbox on each side.
        self.container = StaticContainer(1000, 500)
        self.geometry = GeometryTracker(self.container, self.scheduler)
        self.geometry.set_image_size((1000, 1000))
        self.scheduler.advance(0.1)
        self.capture = TrackingPointerCapture()
        self.controller = InteractionController(
            self.state.hotspots, self.state.puzzles, self.geometry, capture=self.capture
        )

    def click_canvas(self, x: float, y: float):
        return self.controller.handle(PointerEvent(PointerKind.CLICK, x, y))

    def click_hotspot(self, hotspot_id: str):
        return self.controller.handle(
            PointerEvent(PointerKind.CLICK, 0, 0, PointerTarget.HOTSPOT, hotspot_id)
        )

    def puzzle(self, answer: str = "1985") -> str:
        draft = PuzzleDraft(type=PuzzleType.SHORT, question="Year?", expected_answer=answer)
        return self.state.puzzles.create_or_update(draft).id


@pytest.fixture
def builder(sequential_ids: Callable[[], str]) -> _Builder:
    return _Builder(sequential_ids)


def test_canvas_click_creates_hotspot_in_image_space(builder: _Builder) -> None:
    state = builder.click_canvas(500, 250)

    assert isinstance(state, PendingAssign)
    assert state.created is True
    hotspot = builder.state.hotspots.require(state.hotspot_id)
    assert (hotspot.x_pct, hotspot.y_pct) == pytest.approx((50.0, 50.0))
    assert hotspot.puzzle_id is None


def test_canvas_click_in_letterbox_clamps_to_edge(builder: _Builder) -> None:
    state = builder.click_canvas(100, 50)

    hotspot = builder.state.hotspots.require(state.hotspot_id)
    assert (hotspot.x_pct, hotspot.y_pct) == pytest.approx((0.0, 10.0))


def test_assign_links_pending_hotspot(builder: _Builder) -> None:
    puzzle_id = builder.puzzle()
    pending = builder.click_canvas(500, 250)

    builder.controller.assign(puzzle_id)

    assert builder.controller.state == Idle()
    assert builder.state.hotspots.require(pending.hotspot_id).puzzle_id == puzzle_id


def test_click_away_discards_new_hotspot(builder: _Builder) -> None:
    pending = builder.click_canvas(500, 250)

    builder.controller.handle(PointerEvent(PointerKind.CLICK, 0, 0, PointerTarget.POPUP))
    assert builder.controller.pending_hotspot_id == pending.hotspot_id

    builder.click_hotspot(pending.hotspot_id)
    assert builder.controller.pending_hotspot_id == pending.hotspot_id

    state = builder.click_canvas(800, 400)
    assert state == Idle()
    assert len(builder.state.hotspots) == 0


def test_click_away_from_linked_hotspot_keeps_it(builder: _Builder) -> None:
    puzzle_id = builder.puzzle()
    hotspot_id = builder.state.hotspots.create(40, 40)
    builder.state.hotspots.link(hotspot_id, puzzle_id)

    state = builder.click_hotspot(hotspot_id)
    assert state == PendingAssign(hotspot_id)

    builder.controller.handle(PointerEvent(PointerKind.CLICK, 0, 0, PointerTarget.OUTSIDE))
    assert builder.controller.state == Idle()
    assert builder.state.hotspots.require(hotspot_id).puzzle_id == puzzle_id


def test_click_on_other_hotspot_switches_pending(builder: _Builder) -> None:
    puzzle_id = builder.puzzle()
    existing = builder.state.hotspots.create(10, 10)
    builder.state.hotspots.link(existing, puzzle_id)
    pending = builder.click_canvas(500, 250)

    state = builder.click_hotspot(existing)

    assert state == PendingAssign(existing)
    assert builder.state.hotspots.get(pending.hotspot_id) is None


def test_create_and_link_keeps_pending_on_invalid_form(builder: _Builder) -> None:
    pending = builder.click_canvas(500, 250)

    with pytest.raises(ValidationError):
        builder.controller.create_and_link(PuzzleDraft(type=PuzzleType.MCQ, question="Who?"))
    assert builder.controller.state == pending
    assert len(builder.state.puzzles) == 0

    puzzle = builder.controller.create_and_link(
        PuzzleDraft(type=PuzzleType.MCQ, question="Who?", options=["A", "B"], correct_index=1)
    )
    assert builder.controller.state == Idle()
    assert builder.state.hotspots.require(pending.hotspot_id).puzzle_id == puzzle.id


def test_delete_pending_removes_hotspot(builder: _Builder) -> None:
    pending = builder.click_canvas(500, 250)

    builder.controller.delete_pending()

    assert builder.controller.state == Idle()
    assert builder.state.hotspots.get(pending.hotspot_id) is None
    with pytest.raises(RuntimeError):
        builder.controller.delete_pending()


def test_reset_abandons_pending_hotspot(builder: _Builder) -> None:
    pending = builder.click_canvas(500, 250)

    builder.controller.reset()

    assert builder.controller.state == Idle()
    assert builder.state.hotspots.get(pending.hotspot_id) is None

    puzzle_id = builder.puzzle()
    linked = builder.state.hotspots.create(40, 40)
    builder.state.hotspots.link(linked, puzzle_id)
    builder.click_hotspot(linked)

    builder.controller.reset()

    assert builder.controller.state == Idle()
    assert builder.state.hotspots.require(linked).puzzle_id == puzzle_id


def test_drag_preserves_grab_offset_and_clamps(builder: _Builder) -> None:
    hotspot_id = builder.state.hotspots.create(50, 50)

    state = builder.controller.handle(
        PointerEvent(PointerKind.DOWN, 510, 250, PointerTarget.HOTSPOT, hotspot_id, pointer_id=7)
    )
    assert isinstance(state, Dragging)
    assert (state.offset_x, state.offset_y) == pytest.approx((1.0, 0.0))
    assert builder.capture.active == {7}

    builder.controller.handle(PointerEvent(PointerKind.MOVE, 635, 250, pointer_id=7))
    hotspot = builder.state.hotspots.require(hotspot_id)
    assert (hotspot.x_pct, hotspot.y_pct) == pytest.approx((75.0, 50.0))

    builder.controller.handle(PointerEvent(PointerKind.MOVE, 900, 600, pointer_id=7))
    hotspot = builder.state.hotspots.require(hotspot_id)
    assert (hotspot.x_pct, hotspot.y_pct) == pytest.approx((100.0, 100.0))

    builder.controller.handle(PointerEvent(PointerKind.UP, 900, 600, pointer_id=7))
    assert builder.controller.state == Idle()
    assert builder.capture.active == set()


def test_drag_ignores_other_pointers_and_clicks(builder: _Builder) -> None:
    hotspot_id = builder.state.hotspots.create(50, 50)
    builder.controller.handle(
        PointerEvent(PointerKind.DOWN, 500, 250, PointerTarget.HOTSPOT, hotspot_id, pointer_id=1)
    )

    builder.controller.handle(PointerEvent(PointerKind.MOVE, 100, 100, pointer_id=2))
    builder.controller.handle(PointerEvent(PointerKind.UP, 100, 100, pointer_id=2))
    builder.click_canvas(100, 100)

    assert isinstance(builder.controller.state, Dragging)
    assert len(builder.state.hotspots) == 1
    assert builder.state.hotspots.require(hotspot_id).x_pct == pytest.approx(50.0)


def test_pointer_down_outside_idle_is_ignored(builder: _Builder) -> None:
    pending = builder.click_canvas(500, 250)

    state = builder.controller.handle(
        PointerEvent(PointerKind.DOWN, 500, 250, PointerTarget.HOTSPOT, pending.hotspot_id)
    )

    assert state == pending
    assert builder.capture.active == set()


def test_forget_releases_drag_on_deleted_hotspot(builder: _Builder) -> None:
    hotspot_id = builder.state.hotspots.create(50, 50)
    builder.controller.handle(
        PointerEvent(PointerKind.DOWN, 500, 250, PointerTarget.HOTSPOT, hotspot_id)
    )

    builder.controller.forget(hotspot_id)

    assert builder.controller.state == Idle()
    assert builder.capture.active == set()


def test_hotspot_event_requires_id() -> None:
    with pytest.raises(ValueError):
        PointerEvent(PointerKind.CLICK, 0, 0, PointerTarget.HOTSPOT)
