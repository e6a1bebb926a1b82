"""Core package for the point-and-click escape room builder."""

from .errors import (
    EscapeRoomError,
    FieldIssue,
    NotFoundError,
    ReferentialError,
    RequestInFlightError,
    TransportError,
    UnknownHotspotError,
    UnknownPuzzleError,
    ValidationError,
)
from .geometry import (
    ContainerMeasurer,
    GeometryTracker,
    ImageDimensions,
    StaticContainer,
    compute_image_dimensions,
    container_to_image,
    image_to_container,
)
from .models import (
    Hotspot,
    Puzzle,
    PuzzleDraft,
    PuzzleType,
    Settings,
    format_clock,
)
from .stores import HotspotStore, PuzzleStore
from .scheduling import AsyncioScheduler, ManualScheduler, Scheduler
from .interaction import (
    Dragging,
    Idle,
    InteractionController,
    PendingAssign,
    PointerEvent,
    PointerKind,
    PointerTarget,
)
from .play import PlayEngine, PlayStatus
from .state import RoomState
from .rooms import RoomRepository, RoomService, seed_demo_room
from .sync import HttpRoomTransport, LocalRoomTransport, PersistenceSync, RoomTransport
from .drafts import FileDraftStore, InMemoryDraftStore, RoomDraft
from .session import BuilderSession, Mode

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
    "ImageDimensions",
    "compute_image_dimensions",
    "image_to_container",
    "container_to_image",
    "ContainerMeasurer",
    "StaticContainer",
    "GeometryTracker",
    "Puzzle",
    "PuzzleDraft",
    "PuzzleType",
    "Hotspot",
    "Settings",
    "format_clock",
    "PuzzleStore",
    "HotspotStore",
    "Scheduler",
    "ManualScheduler",
    "AsyncioScheduler",
    "InteractionController",
    "PointerEvent",
    "PointerKind",
    "PointerTarget",
    "Idle",
    "PendingAssign",
    "Dragging",
    "PlayEngine",
    "PlayStatus",
    "RoomState",
    "RoomRepository",
    "RoomService",
    "seed_demo_room",
    "RoomTransport",
    "LocalRoomTransport",
    "HttpRoomTransport",
    "PersistenceSync",
    "RoomDraft",
    "InMemoryDraftStore",
    "FileDraftStore",
    "BuilderSession",
    "Mode",
]
