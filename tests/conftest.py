"""Test configuration for the escape room builder."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import base64
import io
import itertools
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from escaperoom.api import RoomApiSettings, create_app
from escaperoom.rooms import RoomRepository, RoomService
from escaperoom.scheduling import ManualScheduler


@pytest.fixture()
def repository() -> Iterator[RoomRepository]:
    """Return a repository backed by a private in-memory SQLite database."""

    repo = RoomRepository.from_url("sqlite://")
    repo.create_schema()
    yield repo
    repo.engine.dispose()


@pytest.fixture()
def service(repository: RoomRepository) -> RoomService:
    return RoomService(repository)


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def api_settings() -> RoomApiSettings:
    return RoomApiSettings(database_url="sqlite://")


@pytest.fixture()
def client(repository: RoomRepository, api_settings: RoomApiSettings) -> Iterator[TestClient]:
    with TestClient(create_app(repository, settings=api_settings)) as test_client:
        yield test_client


@pytest.fixture()
def sequential_ids() -> Callable[[], str]:
    """Return an id factory producing ``id-1``, ``id-2``, ..."""

    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


def _png_data_url(width: int, height: int) -> str:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(20, 20, 20)).save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


@pytest.fixture()
def png_data_url() -> Callable[[int, int], str]:
    """Factory encoding a blank PNG of the given size as a data URL."""

    return _png_data_url
