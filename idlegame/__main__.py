"""Command line utilities for idle game saves."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from .config import GameConfig
from .engine import GameEngine
from .storage import DataStore
from .transfer import dumps_export, loads_import


def _config(args: argparse.Namespace) -> GameConfig:
    config = GameConfig.from_env()
    if args.root:
        config.data_root = Path(args.root).expanduser().resolve()
    return config


async def _open_engine(args: argparse.Namespace) -> GameEngine | None:
    engine = await GameEngine.create(_config(args))
    if engine is None:
        print("Could not open the game database.", file=sys.stderr)
    return engine


async def _command_status(args: argparse.Namespace) -> int:
    engine = await _open_engine(args)
    if engine is None:
        return 1
    try:
        status = engine.status()
    finally:
        engine.close()
    state = status.pop("state") or {}
    resources = state.get("resources", {})
    print(f"Database: {status.pop('database')} (schema v{status.pop('version')})")
    print(
        f"Level {state.get('level', 0)}: "
        f"{resources.get('gold', 0)} gold, "
        f"{resources.get('experience', 0)} experience, "
        f"{float(resources.get('energy', 0)):.1f} energy"
    )
    for key, value in status.items():
        print(f"  - {key}: {value}")
    return 0


async def _command_migrate(args: argparse.Namespace) -> int:
    config = _config(args)
    store = await DataStore.open(config.db_name, config.db_version, root=config.data_root)
    if store is None:
        print("Migration failed; see the log for details.", file=sys.stderr)
        return 1
    print(f"{store.path} is at schema version {store.version}")
    print("Collections: " + ", ".join(sorted(store.collections)))
    return 0


async def _command_export(args: argparse.Namespace) -> int:
    output = Path(args.output).resolve()
    if output.exists() and not args.force:
        print(f"Refusing to overwrite existing file: {output}", file=sys.stderr)
        return 2
    engine = await _open_engine(args)
    if engine is None:
        return 1
    try:
        result = await engine.export_data()
    finally:
        engine.close()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(dumps_export(result.data["data"]), encoding="utf-8")
    print(f"Exported game data to {output}")
    return 0


async def _command_import(args: argparse.Namespace) -> int:
    source = Path(args.input).resolve()
    if not source.exists():
        print(f"File not found: {source}", file=sys.stderr)
        return 2
    try:
        payload = loads_import(source.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        print(f"Could not parse {source}: {exc}", file=sys.stderr)
        return 2
    engine = await _open_engine(args)
    if engine is None:
        return 1
    try:
        result = await engine.import_data(payload)
    finally:
        engine.close()
    if not result:
        print(result.message, file=sys.stderr)
        for error in result.data.get("errors", ()):
            print(f"  - {error}", file=sys.stderr)
        return 1
    print(f"Imported game data from {source}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Maintenance utilities for idle game saves.")
    parser.add_argument("--root", help="Directory holding the game databases")

    subparsers = parser.add_subparsers(dest="command")

    status_parser = subparsers.add_parser("status", help="Summarise the current save")
    status_parser.set_defaults(func=_command_status)

    migrate_parser = subparsers.add_parser(
        "migrate", help="Upgrade the database to the configured schema version"
    )
    migrate_parser.set_defaults(func=_command_migrate)

    export_parser = subparsers.add_parser("export", help="Write the whole save to a JSON file")
    export_parser.add_argument("output", help="Destination JSON file")
    export_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the destination file if it already exists",
    )
    export_parser.set_defaults(func=_command_export)

    import_parser = subparsers.add_parser(
        "import", help="Merge a previously exported JSON file into the save"
    )
    import_parser.add_argument("input", help="Path to the JSON file to import")
    import_parser.set_defaults(func=_command_import)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 0
    logging.basicConfig(level=GameConfig.from_env().log_level)
    return asyncio.run(args.func(args))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
