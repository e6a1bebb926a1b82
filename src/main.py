"""Command-line entry point for the escape room builder service."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from typing import Sequence

import uvicorn

from escaperoom import (
    BuilderSession,
    LocalRoomTransport,
    NotFoundError,
    RoomRepository,
    RoomService,
    seed_demo_room,
)
from escaperoom.api import RoomApiSettings, create_app
from escaperoom.logging_utils import configure_logging

logger = logging.getLogger("escaperoom.cli")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Escape room builder")
    parser.add_argument(
        "--database-url",
        type=str,
        help="SQLAlchemy database URL. Defaults to ESCAPEROOM_DATABASE_URL when unset.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level (default: ESCAPEROOM_LOG_LEVEL or INFO).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the room API with uvicorn.")
    serve.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the API server.",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port where the API server should listen.",
    )

    commands.add_parser("init-db", help="Create the database tables.")
    commands.add_parser("seed", help="Store the sample detective office room.")

    show = commands.add_parser("show", help="Print a stored room as JSON.")
    show.add_argument("room_id")

    remove = commands.add_parser("delete", help="Delete a stored room.")
    remove.add_argument("room_id")

    publish = commands.add_parser(
        "publish-draft",
        help="Save the autosaved builder draft from ESCAPEROOM_DRAFT_DIR as a room.",
    )
    publish.add_argument("--draft-id", default="default", help="Draft to publish.")
    publish.add_argument("--name", help="Room name (default: the draft's name).")

    return parser.parse_args(argv)


def _resolve_settings(args: argparse.Namespace) -> RoomApiSettings:
    try:
        settings = RoomApiSettings.from_env()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}")
        raise SystemExit(2) from exc

    if args.database_url:
        settings = replace(settings, database_url=args.database_url.strip())
    if args.log_level:
        settings = replace(settings, log_level=args.log_level.strip().upper())
    return settings


def main(argv: Sequence[str] | None = None) -> None:
    """Run one command against the configured room database."""

    args = _parse_args(argv)
    settings = _resolve_settings(args)

    try:
        configure_logging(settings.log_level)
    except ValueError as exc:
        print(str(exc))
        raise SystemExit(2) from exc

    repository = RoomRepository.from_url(settings.database_url, echo=settings.echo_sql)
    repository.create_schema()

    if args.command == "serve":
        app = create_app(repository, settings=settings)
        logger.info("Serving room API on %s:%d", args.host, args.port)
        uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())
        return

    if args.command == "init-db":
        print(f"Database ready at {settings.database_url}")
        return

    service = RoomService(repository, hotspot_size=settings.hotspot_size)

    if args.command == "seed":
        response = seed_demo_room(service)
        print(f"Seeded room {response.room_id} ({response.slug})")
        return

    if args.command == "publish-draft":
        if settings.draft_dir is None:
            print("ESCAPEROOM_DRAFT_DIR must be set to publish a draft.")
            raise SystemExit(2)
        session = BuilderSession.from_settings(
            settings, transport=LocalRoomTransport(service), draft_id=args.draft_id
        )
        session.restore_draft()
        response = session.save(args.name)
        print(f"Published draft '{args.draft_id}' as room {response.room_id} ({response.slug})")
        return

    try:
        if args.command == "show":
            payload = service.load(args.room_id)
            print(json.dumps(payload.model_dump(by_alias=True, mode="json"), indent=2))
        elif args.command == "delete":
            service.delete(args.room_id)
            print(f"Deleted room {args.room_id}")
    except NotFoundError as exc:
        print(str(exc))
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
