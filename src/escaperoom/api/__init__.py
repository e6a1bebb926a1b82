"""FastAPI application exposing room save, load, and delete endpoints."""

from .app import create_app
from .settings import RoomApiSettings

__all__ = ["create_app", "RoomApiSettings"]
