"""Tests for the client persistence sync and its transports."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from escaperoom.errors import (
    NotFoundError,
    ReferentialError,
    RequestInFlightError,
    TransportError,
)
from escaperoom.models import PuzzleDraft, PuzzleType, Settings
from escaperoom.rooms import RoomService
from escaperoom.schemas import (
    HotspotPayload,
    PuzzlePayload,
    RoomPayload,
    SaveRoomRequest,
    SaveRoomResponse,
    SettingsPayload,
)
from escaperoom.state import RoomState
from escaperoom.sync import (
    HttpRoomTransport,
    LocalRoomTransport,
    PersistenceSync,
    RoomTransport,
)


def _populate(state: RoomState) -> None:
    calendar = state.puzzles.create_or_update(
        PuzzleDraft(type=PuzzleType.SHORT, question="Year?", expected_answer="1985")
    )
    suspect = state.puzzles.create_or_update(
        PuzzleDraft(
            type=PuzzleType.MCQ,
            question="Suspect?",
            options=["Butler", "Chef"],
            correct_index=0,
            image_data_url="data:image/png;base64,AAAA",
        )
    )
    for x, puzzle_id in [(10, calendar.id), (40, suspect.id), (70, None), (90, calendar.id)]:
        hotspot_id = state.hotspots.create(x, 25)
        state.hotspots.link(hotspot_id, puzzle_id)
    state.settings = Settings(global_minutes=30, background_image="data:image/png;base64,BBBB")


def _linked_content(state: RoomState) -> list:
    graph = []
    for hotspot in state.hotspots:
        puzzle = state.puzzles.get(hotspot.puzzle_id) if hotspot.puzzle_id else None
        graph.append(
            (hotspot.x_pct, hotspot.y_pct, puzzle.content_key() if puzzle else None)
        )
    return graph


@pytest.fixture
def local_transport(service: RoomService) -> LocalRoomTransport:
    return LocalRoomTransport(service)


@pytest.mark.parametrize("transport_kind", ["local", "http"])
def test_save_then_load_preserves_linked_content(
    transport_kind: str,
    local_transport: LocalRoomTransport,
    client: TestClient,
    sequential_ids: Callable[[], str],
) -> None:
    transport: RoomTransport = (
        local_transport if transport_kind == "local" else HttpRoomTransport(client)
    )
    source = RoomState.empty(id_factory=sequential_ids)
    _populate(source)
    sync = PersistenceSync(source, transport)

    response = sync.save("Office")

    assert source.settings.room_id == response.room_id
    assert source.settings.name == "Office"

    target = RoomState.empty()
    settings = PersistenceSync(target, transport).load(response.room_id)

    assert settings.room_id == response.room_id
    assert settings.global_minutes == 30
    assert settings.background_image == "data:image/png;base64,BBBB"
    assert settings.name == "Office"
    assert _linked_content(target) == _linked_content(source)
    assert set(target.puzzles.ids()).isdisjoint(source.puzzles.ids())


def test_resave_updates_same_room(
    local_transport: LocalRoomTransport, service: RoomService
) -> None:
    state = RoomState.empty()
    _populate(state)
    sync = PersistenceSync(state, local_transport)
    first = sync.save()

    state.puzzles.delete(state.puzzles.ids()[0])
    second = sync.save()

    assert second.room_id == first.room_id
    assert len(service.load(first.room_id).puzzles) == 1
    assert len(service.list_rooms()) == 1


def test_http_load_of_missing_room_raises_not_found(client: TestClient) -> None:
    state = RoomState.empty()
    _populate(state)
    before = _linked_content(state)
    sync = PersistenceSync(state, HttpRoomTransport(client))

    with pytest.raises(NotFoundError):
        sync.load("missing")
    with pytest.raises(NotFoundError):
        sync.delete("missing")

    assert _linked_content(state) == before
    assert sync.busy is False


def _failing_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler), base_url="http://rooms.test")


def test_server_error_becomes_transport_error() -> None:
    client = _failing_client(
        lambda request: httpx.Response(
            500, json={"error": "Failed to save room", "details": "disk full"}
        )
    )
    state = RoomState.empty()
    _populate(state)
    sync = PersistenceSync(state, HttpRoomTransport(client))

    with pytest.raises(TransportError) as excinfo:
        sync.save()

    assert excinfo.value.status_code == 500
    assert "Failed to save room" in str(excinfo.value)
    assert state.settings.room_id is None


def test_network_failure_becomes_transport_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    state = RoomState.empty()
    _populate(state)
    before = _linked_content(state)
    sync = PersistenceSync(state, HttpRoomTransport(_failing_client(refuse)))

    with pytest.raises(TransportError):
        sync.load("room-1")

    assert _linked_content(state) == before
    assert sync.busy is False


def test_malformed_response_becomes_transport_error() -> None:
    client = _failing_client(lambda request: httpx.Response(200, text="<html>"))
    sync = PersistenceSync(RoomState.empty(), HttpRoomTransport(client))

    with pytest.raises(TransportError):
        sync.load("room-1")


class _ScriptedTransport(RoomTransport):
    def __init__(self, payload: RoomPayload | None = None) -> None:
        self.payload = payload
        self.on_save: Callable[[], None] | None = None
        self.deleted: list[str] = []

    def save(self, request: SaveRoomRequest) -> SaveRoomResponse:
        if self.on_save is not None:
            self.on_save()
        return SaveRoomResponse(room_id="room-1", slug="room-1234")

    def load(self, room_id: str) -> RoomPayload:
        assert self.payload is not None
        return self.payload

    def delete(self, room_id: str) -> None:
        self.deleted.append(room_id)


def test_dangling_reference_on_load_is_rejected() -> None:
    payload = RoomPayload(
        settings=SettingsPayload(global_minutes=5, room_id="room-1"),
        puzzles=[PuzzlePayload(id="p1", type="short", question="Q", expected_answer="a")],
        hotspots=[HotspotPayload(id="h1", puzzle_id="ghost", x_pct=1, y_pct=1)],
    )
    state = RoomState.empty()
    _populate(state)
    before = _linked_content(state)

    with pytest.raises(ReferentialError):
        PersistenceSync(state, _ScriptedTransport(payload)).load("room-1")

    assert _linked_content(state) == before


def test_second_request_while_in_flight_is_rejected() -> None:
    transport = _ScriptedTransport()
    sync = PersistenceSync(RoomState.empty(), transport)
    nested: list[Exception] = []

    def reenter() -> None:
        assert sync.busy is True
        try:
            sync.save()
        except RequestInFlightError as exc:
            nested.append(exc)

    transport.on_save = reenter
    sync.save()

    assert len(nested) == 1
    assert sync.busy is False


def test_delete_of_open_room_marks_graph_unsaved() -> None:
    transport = _ScriptedTransport()
    state = RoomState.empty()
    sync = PersistenceSync(state, transport)

    with pytest.raises(ValueError):
        sync.delete()

    sync.save()
    sync.delete()

    assert transport.deleted == ["room-1"]
    assert state.settings.room_id is None
    assert state.settings.is_saved is False
