"""Relational room storage and the server-side save, load, and delete flows.

Saving always performs a full replace: the room's existing puzzle and
hotspot rows are deleted and recreated from the submitted graph inside one
transaction. Puzzles are written first so that a client-to-server id map is
available when the hotspots are written.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    event,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    selectinload,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool

from .errors import NotFoundError
from .schemas import (
    HotspotPayload,
    PuzzlePayload,
    RoomPayload,
    RoomSummary,
    SaveRoomRequest,
    SaveRoomResponse,
    SettingsPayload,
)

logger = logging.getLogger(__name__)

DEFAULT_HOTSPOT_SIZE = 6.0


def _new_row_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class RoomRecord(Base):
    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_row_id)
    slug: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    theme: Mapped[str | None] = mapped_column(String(120), nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    global_minutes: Mapped[int] = mapped_column(Integer, default=5)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    puzzles: Mapped[List["PuzzleRecord"]] = relationship(
        back_populates="room",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PuzzleRecord.position",
    )
    hotspots: Mapped[List["HotspotRecord"]] = relationship(
        back_populates="room",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="HotspotRecord.position",
    )

    def __repr__(self) -> str:
        return f"<RoomRecord {self.slug}>"


class PuzzleRecord(Base):
    __tablename__ = "puzzles"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_row_id)
    room_id: Mapped[str] = mapped_column(
        ForeignKey("rooms.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    type: Mapped[str] = mapped_column(String(10))
    question: Mapped[str] = mapped_column(Text)
    options: Mapped[list] = mapped_column(JSON, default=list)
    correct_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    expected_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    clue: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_solved: Mapped[bool] = mapped_column(Boolean, default=False)

    room: Mapped[RoomRecord] = relationship(back_populates="puzzles")


class HotspotRecord(Base):
    __tablename__ = "hotspots"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_row_id)
    room_id: Mapped[str] = mapped_column(
        ForeignKey("rooms.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    puzzle_id: Mapped[str | None] = mapped_column(
        ForeignKey("puzzles.id", ondelete="SET NULL"), nullable=True
    )
    x: Mapped[float] = mapped_column(Float)
    y: Mapped[float] = mapped_column(Float)
    width: Mapped[float] = mapped_column(Float, default=DEFAULT_HOTSPOT_SIZE)
    height: Mapped[float] = mapped_column(Float, default=DEFAULT_HOTSPOT_SIZE)

    room: Mapped[RoomRecord] = relationship(back_populates="hotspots")


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class RoomRepository:
    """Transactional create, delete-many, and find operations keyed by room id."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str, *, echo: bool = False) -> "RoomRepository":
        """Create a repository for ``url``; in-memory SQLite shares one connection."""

        options: Dict[str, Any] = {"echo": echo}
        if url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:"):
            options["connect_args"] = {"check_same_thread": False}
            options["poolclass"] = StaticPool
        engine = create_engine(url, **options)
        _enable_sqlite_foreign_keys(engine)
        return cls(engine)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on any error."""

        with self._session_factory.begin() as session:
            yield session

    def find_room(self, session: Session, room_id: str, *, with_children: bool = False) -> RoomRecord | None:
        statement = select(RoomRecord).where(RoomRecord.id == room_id)
        if with_children:
            statement = statement.options(
                selectinload(RoomRecord.puzzles), selectinload(RoomRecord.hotspots)
            )
        return session.scalars(statement).first()

    def slug_exists(self, session: Session, slug: str) -> bool:
        return session.scalars(select(RoomRecord.id).where(RoomRecord.slug == slug)).first() is not None

    def create_room(self, session: Session, **values: Any) -> RoomRecord:
        room = RoomRecord(**values)
        session.add(room)
        session.flush()
        return room

    def delete_children(self, session: Session, room_id: str) -> None:
        """Delete every hotspot and puzzle row of a room."""

        session.flush()
        session.execute(delete(HotspotRecord).where(HotspotRecord.room_id == room_id))
        session.execute(delete(PuzzleRecord).where(PuzzleRecord.room_id == room_id))
        session.expire_all()

    def create_puzzle(self, session: Session, **values: Any) -> PuzzleRecord:
        puzzle = PuzzleRecord(**values)
        session.add(puzzle)
        session.flush()
        return puzzle

    def create_hotspot(self, session: Session, **values: Any) -> HotspotRecord:
        hotspot = HotspotRecord(**values)
        session.add(hotspot)
        session.flush()
        return hotspot

    def delete_room(self, session: Session, room: RoomRecord) -> None:
        session.delete(room)
        session.flush()

    def list_rooms(self, session: Session) -> List[RoomRecord]:
        return list(session.scalars(select(RoomRecord).order_by(RoomRecord.created_at)))

    def count_children(self, session: Session, room_id: str) -> tuple[int, int]:
        """Return ``(puzzle_count, hotspot_count)`` for a room."""

        puzzles = session.scalars(
            select(PuzzleRecord.id).where(PuzzleRecord.room_id == room_id)
        ).all()
        hotspots = session.scalars(
            select(HotspotRecord.id).where(HotspotRecord.room_id == room_id)
        ).all()
        return len(puzzles), len(hotspots)


_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def slugify(name: str, *, suffix: str) -> str:
    """Return a URL-safe slug for ``name`` followed by ``suffix``."""

    return f"{_SLUG_PATTERN.sub('-', name.lower())}-{suffix}"


class RoomService:
    """Server-side save, load, delete, and listing of rooms."""

    def __init__(
        self,
        repository: RoomRepository,
        *,
        hotspot_size: float = DEFAULT_HOTSPOT_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.repository = repository
        self.hotspot_size = hotspot_size
        self._clock = clock

    def save(self, request: SaveRoomRequest) -> SaveRoomResponse:
        """Replace or create a room from ``request`` in one transaction."""

        settings = request.settings
        with self.repository.transaction() as session:
            room: RoomRecord | None = None
            if request.room_id:
                room = self.repository.find_room(session, request.room_id)
                if room is None:
                    logger.info(
                        "Room %s no longer exists; saving as a new room", request.room_id
                    )
                else:
                    room.name = request.name
                    room.global_minutes = settings.global_minutes
                    room.image_url = settings.background_image
                    self.repository.delete_children(session, room.id)

            if room is None:
                room = self.repository.create_room(
                    session,
                    slug=self._unique_slug(session, request.name),
                    name=request.name,
                    global_minutes=settings.global_minutes,
                    image_url=settings.background_image,
                )

            id_map: Dict[str, str] = {}
            for position, puzzle in enumerate(request.puzzles):
                record = self.repository.create_puzzle(
                    session,
                    room_id=room.id,
                    position=position,
                    type=puzzle.type,
                    question=puzzle.question,
                    options=list(puzzle.options),
                    correct_index=puzzle.correct_index,
                    expected_answer=puzzle.expected_answer,
                    image_url=puzzle.image_data_url,
                    is_solved=False,
                )
                id_map[puzzle.id] = record.id

            for position, hotspot in enumerate(request.hotspots):
                linked_id: str | None = None
                if hotspot.puzzle_id is not None:
                    linked_id = id_map.get(hotspot.puzzle_id)
                    if linked_id is None:
                        logger.warning(
                            "Hotspot %s referenced unknown puzzle %s; saved unlinked",
                            hotspot.id,
                            hotspot.puzzle_id,
                        )
                self.repository.create_hotspot(
                    session,
                    room_id=room.id,
                    position=position,
                    puzzle_id=linked_id,
                    x=hotspot.x_pct,
                    y=hotspot.y_pct,
                    width=self.hotspot_size,
                    height=self.hotspot_size,
                )

            response = SaveRoomResponse(room_id=room.id, slug=room.slug)

        logger.info(
            "Saved room %s with %d puzzles and %d hotspots",
            response.room_id,
            len(request.puzzles),
            len(request.hotspots),
        )
        return response

    def load(self, room_id: str) -> RoomPayload:
        """Return the room graph for ``room_id``.

        Raises:
            NotFoundError: If the room does not exist.
        """

        with self.repository.transaction() as session:
            room = self.repository.find_room(session, room_id, with_children=True)
            if room is None:
                raise NotFoundError(room_id)
            return RoomPayload(
                name=room.name,
                settings=SettingsPayload(
                    global_minutes=room.global_minutes,
                    background_image=room.image_url,
                    room_id=room.id,
                ),
                puzzles=[
                    PuzzlePayload(
                        id=puzzle.id,
                        type=puzzle.type,
                        question=puzzle.question,
                        options=list(puzzle.options or []),
                        correct_index=puzzle.correct_index,
                        expected_answer=puzzle.expected_answer or "",
                        image_data_url=puzzle.image_url or None,
                    )
                    for puzzle in room.puzzles
                ],
                hotspots=[
                    HotspotPayload(
                        id=hotspot.id,
                        puzzle_id=hotspot.puzzle_id,
                        x_pct=hotspot.x,
                        y_pct=hotspot.y,
                    )
                    for hotspot in room.hotspots
                ],
            )

    def delete(self, room_id: str) -> None:
        """Delete a room; its puzzles and hotspots go with it.

        Raises:
            NotFoundError: If the room does not exist.
        """

        with self.repository.transaction() as session:
            room = self.repository.find_room(session, room_id)
            if room is None:
                raise NotFoundError(room_id)
            self.repository.delete_room(session, room)
        logger.info("Deleted room %s", room_id)

    def list_rooms(self) -> List[RoomSummary]:
        with self.repository.transaction() as session:
            return [
                RoomSummary(id=room.id, name=room.name, slug=room.slug)
                for room in self.repository.list_rooms(session)
            ]

    def _unique_slug(self, session: Session, name: str) -> str:
        suffix = str(int(self._clock() * 1000))[-4:]
        slug = slugify(name, suffix=suffix)
        while self.repository.slug_exists(session, slug):
            slug = slugify(name, suffix=uuid.uuid4().hex[:6])
        return slug


def seed_demo_room(service: RoomService) -> SaveRoomResponse:
    """Create the sample detective office room with one decorative hotspot."""

    request = SaveRoomRequest(
        name="The Detective's Office",
        settings=SettingsPayload(global_minutes=45),
        puzzles=[
            PuzzlePayload(
                id="calendar",
                type="short",
                question="What is the year on the calendar?",
                options=[""],
                expected_answer="1985",
            ),
            PuzzlePayload(
                id="suspect",
                type="mcq",
                question="Who is the prime suspect?",
                options=["The Butler", "The Gardener", "The Chef", "The Driver"],
                correct_index=0,
            ),
        ],
        hotspots=[
            HotspotPayload(id="wall", puzzle_id="calendar", x_pct=10.5, y_pct=20.0),
            HotspotPayload(id="desk", puzzle_id="suspect", x_pct=45.0, y_pct=62.0),
            HotspotPayload(id="plant", puzzle_id=None, x_pct=80.0, y_pct=50.0),
        ],
    )
    return service.save(request)


__all__ = [
    "Base",
    "RoomRecord",
    "PuzzleRecord",
    "HotspotRecord",
    "RoomRepository",
    "RoomService",
    "DEFAULT_HOTSPOT_SIZE",
    "slugify",
    "seed_demo_room",
]
