"""FastAPI application exposing room persistence endpoints."""

from __future__ import annotations

import logging
from typing import List

from fastapi import FastAPI, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import JSONResponse

from ..errors import NotFoundError
from ..rooms import RoomRepository, RoomService
from ..schemas import (
    DeleteRoomResponse,
    RoomPayload,
    RoomSummary,
    SaveRoomRequest,
    SaveRoomResponse,
)
from .settings import RoomApiSettings

logger = logging.getLogger(__name__)

ROOM_NOT_FOUND = "Room not found"


def create_app(
    repository: RoomRepository | None = None,
    *,
    settings: RoomApiSettings | None = None,
) -> FastAPI:
    """Create a FastAPI app exposing the room save, load, and delete endpoints."""

    resolved_settings = settings or RoomApiSettings.from_env()

    if repository is None:
        repository = RoomRepository.from_url(
            resolved_settings.database_url, echo=resolved_settings.echo_sql
        )
        repository.create_schema()

    service = RoomService(repository, hotspot_size=resolved_settings.hotspot_size)

    app = FastAPI(title="Escape Room Builder API", version="0.1.0")
    app.state.room_service = service
    app.state.settings = resolved_settings

    @app.get("/rooms", response_model=List[RoomSummary], tags=["Rooms"])
    def list_rooms() -> List[RoomSummary]:
        try:
            return service.list_rooms()
        except SQLAlchemyError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

    @app.get("/rooms/{room_id}", response_model=RoomPayload, tags=["Rooms"])
    def get_room(room_id: str) -> RoomPayload:
        try:
            return service.load(room_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=ROOM_NOT_FOUND) from exc
        except SQLAlchemyError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

    @app.post(
        "/rooms",
        response_model=SaveRoomResponse,
        tags=["Rooms"],
        responses={500: {"description": "The room could not be stored."}},
    )
    def save_room(payload: SaveRoomRequest):
        try:
            return service.save(payload)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except (SQLAlchemyError, RuntimeError) as exc:
            logger.exception("Failed to save room %s", payload.room_id or "<new>")
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to save room", "details": str(exc)},
            )

    @app.delete("/rooms/{room_id}", response_model=DeleteRoomResponse, tags=["Rooms"])
    def delete_room(room_id: str) -> DeleteRoomResponse:
        try:
            service.delete(room_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=ROOM_NOT_FOUND) from exc
        except SQLAlchemyError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return DeleteRoomResponse(success=True)

    return app


__all__ = ["create_app", "ROOM_NOT_FOUND"]
