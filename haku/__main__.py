"""Entry point for the Haku command line.

This module allows running Haku as a module:
    python -m haku import backup.json

Or as an installed command:
    haku export
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from haku import __version__
from haku.config import Config
from haku.database import init_database
from haku.logging_config import setup_logging, get_logger
from haku.services.export_import import ExportImportService
from haku.services.persistence import PersistenceGateway
from haku.services.storage import SQLiteKeyValueStorage
from haku.store import (
    ActivityStore,
    get_inbox_activities,
    get_later_activities,
    load_store,
)

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(prog="haku", description="Manage Haku planner data")
    parser.add_argument("--version", action="version", version=f"haku {__version__}")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.ini")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")

    commands = parser.add_subparsers(dest="command", required=True)

    import_cmd = commands.add_parser("import", help="Replace all data with a backup")
    import_cmd.add_argument("file", help="Backup .json file, or - to read JSON from stdin")

    export_cmd = commands.add_parser("export", help="Write a backup file")
    export_cmd.add_argument("output", nargs="?", default=None, help="Output path")

    commands.add_parser("show", help="Summarize stored data")
    commands.add_parser("reset", help="Delete all data and restore defaults")

    return parser


def _print_summary(store: ActivityStore) -> None:
    scheduled = [a for a in store.activities if a.bucket == "scheduled"]
    done = [a for a in store.activities if a.is_done]
    print(f"Activities: {len(store.activities)} ({len(done)} done)")
    print(f"  inbox:     {len(get_inbox_activities(store.activities))}")
    print(f"  later:     {len(get_later_activities(store.activities))}")
    print(f"  scheduled: {len(scheduled)}")
    print(f"Lists version: {store.lists.version}")
    print(f"Week starts on: {store.settings.week_start}")
    print(f"Theme: {store.settings.theme_mode}")


async def run(args: argparse.Namespace, config: Config) -> int:
    """
    Execute one command against the configured storage.

    Args:
        args: Parsed command line
        config: Loaded configuration

    Returns:
        Exit code
    """
    storage_config = config.get_storage_config()
    db_manager = await init_database(storage_config['database_url'])

    try:
        storage = SQLiteKeyValueStorage(db_manager, max_value_bytes=storage_config['max_value_bytes'])
        gateway = PersistenceGateway(storage, key=storage_config['storage_key'])
        store = await load_store(gateway)
        service = ExportImportService(store, gateway)

        if args.command == "import":
            if args.file == "-":
                result = await service.import_from_text(sys.stdin.read())
            else:
                result = await service.import_from_file(args.file)
            if not result.ok:
                print(f"Import failed: {result.error}", file=sys.stderr)
                return 1
            print(f"Imported {len(store.activities)} activities")
            return 0

        if args.command == "export":
            output = args.output
            if output is None:
                output = config.get_export_config()['directory'] / service.default_export_filename()
            path = await service.export_to_file(output)
            print(f"Exported to {path}")
            return 0

        if args.command == "show":
            _print_summary(store)
            return 0

        if args.command == "reset":
            if not await store.reset_all_data(gateway):
                print("Reset failed: stored data could not be removed", file=sys.stderr)
                return 1
            print("All data reset")
            return 0

        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await db_manager.close()


def main(args: Optional[list[str]] = None) -> int:
    """Main entry point for Haku.

    Args:
        args: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args is None:
        args = sys.argv[1:]

    parsed = build_parser().parse_args(args)

    # Initialize logging before any other operations
    setup_logging(log_level=parsed.log_level, console=True)

    try:
        return asyncio.run(run(parsed, Config(parsed.config)))
    except KeyboardInterrupt:
        logger.info("Haku interrupted by user (Ctrl+C)")
        return 130
    except Exception:
        logger.error("Error running Haku", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
