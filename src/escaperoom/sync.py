"""Client-side persistence: move the room graph to and from the room service."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from .errors import NotFoundError, RequestInFlightError, TransportError
from .models import Hotspot, Puzzle, PuzzleType, Settings
from .rooms import RoomService
from .schemas import (
    DeleteRoomResponse,
    HotspotPayload,
    PuzzlePayload,
    RoomPayload,
    SaveRoomRequest,
    SaveRoomResponse,
    SettingsPayload,
)
from .state import RoomState
from .stores import check_references

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class RoomTransport(ABC):
    """How the client reaches the room service."""

    @abstractmethod
    def save(self, request: SaveRoomRequest) -> SaveRoomResponse:
        """Submit the full room graph.

        Raises:
            TransportError: If the service cannot be reached or fails.
        """

    @abstractmethod
    def load(self, room_id: str) -> RoomPayload:
        """Fetch a room graph.

        Raises:
            NotFoundError: If the room does not exist.
            TransportError: If the service cannot be reached or fails.
        """

    @abstractmethod
    def delete(self, room_id: str) -> None:
        """Delete a room and its children.

        Raises:
            NotFoundError: If the room does not exist.
            TransportError: If the service cannot be reached or fails.
        """


class LocalRoomTransport(RoomTransport):
    """Call a :class:`RoomService` in-process."""

    def __init__(self, service: RoomService) -> None:
        self.service = service

    def save(self, request: SaveRoomRequest) -> SaveRoomResponse:
        with self._storage_errors("save"):
            return self.service.save(request)

    def load(self, room_id: str) -> RoomPayload:
        with self._storage_errors("load"):
            return self.service.load(room_id)

    def delete(self, room_id: str) -> None:
        with self._storage_errors("delete"):
            self.service.delete(room_id)

    @staticmethod
    @contextmanager
    def _storage_errors(action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            raise TransportError(f"Failed to {action} room: {exc}") from exc


class HttpRoomTransport(RoomTransport):
    """Talk to the room API over HTTP using an :class:`httpx.Client`."""

    def __init__(self, client: httpx.Client, *, prefix: str = "") -> None:
        self.client = client
        self.prefix = prefix.rstrip("/")

    def save(self, request: SaveRoomRequest) -> SaveRoomResponse:
        response = self._send(
            "POST",
            f"{self.prefix}/rooms",
            json=request.model_dump(by_alias=True, mode="json"),
        )
        return self._parse(response, SaveRoomResponse)

    def load(self, room_id: str) -> RoomPayload:
        response = self._send("GET", f"{self.prefix}/rooms/{room_id}", room_id=room_id)
        return self._parse(response, RoomPayload)

    def delete(self, room_id: str) -> None:
        response = self._send(
            "DELETE", f"{self.prefix}/rooms/{room_id}", room_id=room_id
        )
        result = self._parse(response, DeleteRoomResponse)
        if not result.success:
            raise TransportError("Failed to delete room", status_code=response.status_code)

    def _send(
        self, method: str, url: str, *, room_id: str | None = None, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        if response.status_code == 404 and room_id is not None:
            raise NotFoundError(room_id)
        if response.status_code >= 400:
            raise TransportError(
                f"{method} {url} returned {response.status_code}: {_error_text(response)}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _parse(response: httpx.Response, model: Type[_ModelT]) -> _ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise TransportError(
                "Malformed response from room service", status_code=response.status_code
            ) from exc


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, Mapping):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


def puzzle_to_payload(puzzle: Puzzle) -> PuzzlePayload:
    return PuzzlePayload(
        id=puzzle.id,
        type=puzzle.type.value,
        question=puzzle.question,
        options=list(puzzle.options),
        correct_index=puzzle.correct_index,
        expected_answer=puzzle.expected_answer,
        image_data_url=puzzle.image_data_url,
    )


def puzzle_from_payload(payload: PuzzlePayload) -> Puzzle:
    return Puzzle(
        id=payload.id,
        type=PuzzleType(payload.type),
        question=payload.question,
        options=tuple(payload.options),
        correct_index=payload.correct_index,
        expected_answer=payload.expected_answer,
        image_data_url=payload.image_data_url,
    )


def hotspot_to_payload(hotspot: Hotspot) -> HotspotPayload:
    return HotspotPayload(
        id=hotspot.id,
        puzzle_id=hotspot.puzzle_id,
        x_pct=hotspot.x_pct,
        y_pct=hotspot.y_pct,
    )


def hotspot_from_payload(payload: HotspotPayload) -> Hotspot:
    return Hotspot(
        id=payload.id,
        puzzle_id=payload.puzzle_id,
        x_pct=payload.x_pct,
        y_pct=payload.y_pct,
    )


class PersistenceSync:
    """Bridge between the in-memory room graph and durable storage.

    Every save submits the complete graph; the service replaces the room's
    children wholesale. Only one request may be in flight at a time so the UI
    can disable the triggering action while :attr:`busy` is set.
    """

    def __init__(self, state: RoomState, transport: RoomTransport) -> None:
        self._state = state
        self._transport = transport
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def build_request(self, name: str | None = None) -> SaveRoomRequest:
        """Serialise the current graph into a save request."""

        settings = self._state.settings
        return SaveRoomRequest(
            room_id=settings.room_id,
            name=name if name is not None else settings.name,
            settings=SettingsPayload(
                global_minutes=settings.global_minutes,
                background_image=settings.background_image,
                room_id=settings.room_id,
            ),
            puzzles=[puzzle_to_payload(p) for p in self._state.puzzles],
            hotspots=[hotspot_to_payload(h) for h in self._state.hotspots],
        )

    def save(self, name: str | None = None) -> SaveRoomResponse:
        """Persist the graph and remember the room id it was stored under.

        Local puzzle and hotspot ids are left untouched; the next load returns
        the server-assigned ones.
        """

        request = self.build_request(name)
        with self._in_flight("save"):
            response = self._transport.save(request)
        self._state.settings.room_id = response.room_id
        self._state.settings.name = request.name
        return response

    def load(self, room_id: str) -> Settings:
        """Replace the local graph with the stored room.

        Raises:
            NotFoundError: If the room does not exist; local state is untouched.
            TransportError: On service failure; local state is untouched.
            ReferentialError: If the stored graph links to a missing puzzle.
        """

        with self._in_flight("load"):
            payload = self._transport.load(room_id)

        puzzles = [puzzle_from_payload(p) for p in payload.puzzles]
        hotspots = [hotspot_from_payload(h) for h in payload.hotspots]
        check_references(hotspots, (p.id for p in puzzles))

        settings = Settings(
            global_minutes=payload.settings.global_minutes,
            background_image=payload.settings.background_image,
            room_id=payload.settings.room_id or room_id,
            name=payload.name,
        )
        self._state.settings = settings
        self._state.puzzles.replace_all(puzzles)
        self._state.hotspots.replace_all(hotspots)
        logger.info(
            "Loaded room %s with %d puzzles and %d hotspots",
            settings.room_id,
            len(puzzles),
            len(hotspots),
        )
        return settings

    def delete(self, room_id: str | None = None) -> None:
        """Delete a stored room, defaulting to the one currently open.

        Deleting the open room marks the local graph as unsaved.
        """

        target = room_id or self._state.settings.room_id
        if target is None:
            raise ValueError("no room id to delete")
        with self._in_flight("delete"):
            self._transport.delete(target)
        if self._state.settings.room_id == target:
            self._state.settings.room_id = None

    @contextmanager
    def _in_flight(self, action: str) -> Iterator[None]:
        if self._busy:
            raise RequestInFlightError(f"cannot {action} while another request is pending")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False


__all__ = [
    "RoomTransport",
    "LocalRoomTransport",
    "HttpRoomTransport",
    "PersistenceSync",
    "puzzle_to_payload",
    "puzzle_from_payload",
    "hotspot_to_payload",
    "hotspot_from_payload",
]
