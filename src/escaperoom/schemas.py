"""Pydantic models describing the room API wire format."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import DEFAULT_ROOM_NAME


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SettingsPayload(_WireModel):
    """Room-wide settings as exchanged with the client."""

    global_minutes: int = Field(5, ge=1)
    background_image: str | None = None
    room_id: str | None = None


class PuzzlePayload(_WireModel):
    id: str = Field(..., min_length=1)
    type: Literal["short", "mcq"]
    question: str
    options: list[str] = Field(default_factory=list)
    correct_index: int | None = None
    expected_answer: str = ""
    image_data_url: str | None = None


class HotspotPayload(_WireModel):
    id: str = Field(..., min_length=1)
    puzzle_id: str | None = None
    x_pct: float = Field(..., ge=0, le=100)
    y_pct: float = Field(..., ge=0, le=100)


class SaveRoomRequest(_WireModel):
    """Full room graph submitted on every save."""

    room_id: str | None = None
    name: str = DEFAULT_ROOM_NAME
    settings: SettingsPayload = Field(default_factory=SettingsPayload)
    puzzles: list[PuzzlePayload] = Field(default_factory=list)
    hotspots: list[HotspotPayload] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _default_blank_name(cls, value: str) -> str:
        stripped = value.strip()
        return stripped or DEFAULT_ROOM_NAME


class SaveRoomResponse(_WireModel):
    success: bool = True
    room_id: str
    slug: str


class RoomPayload(_WireModel):
    """Room graph returned by a load."""

    settings: SettingsPayload
    puzzles: list[PuzzlePayload] = Field(default_factory=list)
    hotspots: list[HotspotPayload] = Field(default_factory=list)
    name: str = DEFAULT_ROOM_NAME


class DeleteRoomResponse(_WireModel):
    success: bool = True


class RoomSummary(_WireModel):
    id: str
    name: str
    slug: str


__all__ = [
    "SettingsPayload",
    "PuzzlePayload",
    "HotspotPayload",
    "SaveRoomRequest",
    "SaveRoomResponse",
    "RoomPayload",
    "DeleteRoomResponse",
    "RoomSummary",
]
