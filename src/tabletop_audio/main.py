#!/usr/bin/env python3
"""Command line entry point for inspecting and initialising the audio library."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from tabletop_audio.domain.library.value_objects import CollectionType
from tabletop_audio.domain.shared.exceptions import DomainError
from tabletop_audio.utils.logging import ColoredFormatter

if TYPE_CHECKING:
    from tabletop_audio.config.container import Container
    from tabletop_audio.domain.library.entities import Folder

_LOGGING_CONFIG_PATH = Path(__file__).resolve().parents[2] / "logging_config.json"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO", config_path: Path | None = None) -> None:
    resolved_level = getattr(logging, log_level.upper(), logging.INFO)
    path = config_path or _LOGGING_CONFIG_PATH

    try:
        with open(path) as f:
            config = json.load(f)
        logging.config.dictConfig(config)
    except (FileNotFoundError, json.JSONDecodeError, ValueError):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredFormatter(_LOG_FORMAT, datefmt=_DATE_FORMAT, stream=sys.stderr))
        logging.basicConfig(level=resolved_level, handlers=[handler], force=True)
        logging.getLogger(__name__).debug("Could not load %s, using basic config", path)

    logging.getLogger().setLevel(resolved_level)


def _print_tree(folder: Folder, depth: int = 0) -> None:
    print(f"{'  ' * depth}{folder.name} [{folder.folder_type.value}] #{folder.id}")
    for child in folder.sorted_children():
        _print_tree(child, depth + 1)


async def _run(command: str, args: argparse.Namespace, container: Container) -> int:
    await container.initialize()
    try:
        if command == "init":
            root = await container.collection_store.ensure_root_folder()
            print(f"Library ready at {container.database.db_path} (root folder #{root.id})")
        elif command == "tree":
            _print_tree(await container.collection_store.get_folder_tree())
        elif command == "collections":
            collections = await container.collection_store.list_collections(args.type)
            for collection in collections:
                print(
                    f"#{collection.id} {collection.collection_type.value:<8} "
                    f"{collection.name} ({collection.item_count} items)"
                )
        elif command == "stats":
            print(json.dumps(await container.database.get_stats(), indent=2, default=str))
        return 0
    finally:
        await container.shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tabletop-audio", description=__doc__)
    parser.add_argument("--database-url", help="Override DATABASE__URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the schema and the root folder")
    subparsers.add_parser("tree", help="Print the folder tree")
    collections = subparsers.add_parser("collections", help="List collections")
    collections.add_argument(
        "--type", choices=[t.value for t in CollectionType], default=None, help="Only this type"
    )
    subparsers.add_parser("stats", help="Print database statistics")
    return parser


def main(argv: list[str] | None = None) -> int:
    from tabletop_audio.config.container import create_container
    from tabletop_audio.config.settings import DatabaseSettings, get_settings

    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.database_url:
        try:
            database = DatabaseSettings.model_validate(
                {**settings.database.model_dump(), "url": args.database_url}
            )
        except ValueError as e:
            parser.error(str(e))
        settings = settings.model_copy(update={"database": database})

    try:
        return asyncio.run(_run(args.command, args, create_container(settings)))
    except DomainError as e:
        logger.error("%s: %s", e.code, e.message)
        return 1
    except KeyboardInterrupt:
        return 0


def cli() -> None:
    """Console script entry point (used by pyproject.toml [project.scripts])."""
    sys.exit(main())


if __name__ == "__main__":
    cli()  # pragma: no cover
