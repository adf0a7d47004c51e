"""Command-line interface: run the server or migrate seed data."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pagecms.config import Settings
from pagecms.exceptions import ConfigurationError, InternalServerError
from pagecms.filesystem.seed_loader import resolve_seed_dir
from pagecms.services.migration_service import MigrationResult, migrate
from pagecms.store.document_store import DocumentStore

logger = logging.getLogger(__name__)


async def run_migration(settings: Settings, force: bool) -> MigrationResult:
    """Migrate seed data into the configured document store."""
    store = DocumentStore.from_settings(settings)
    try:
        await store.init()
        return await migrate(store, resolve_seed_dir(settings.seed_dir), force=force)
    finally:
        await store.close()


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="pagecms",
        description="PageCMS - a minimal content management server",
    )
    parser.add_argument("--debug", action="store_true", help="Run in development mode")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="Start the web server")

    migrate_parser = subparsers.add_parser("migrate", help="Load seed data into the store")
    migrate_parser.add_argument(
        "--force", action="store_true", help="Overwrite documents that already exist"
    )
    migrate_parser.add_argument("--seed-dir", type=Path, help="Seed directory override")

    args = parser.parse_args(argv)

    if args.command == "serve":
        from pagecms.main import cli_entry

        cli_entry()
        return

    if args.command == "migrate":
        overrides: dict[str, object] = {}
        if args.debug:
            overrides["debug"] = True
        if args.seed_dir is not None:
            overrides["seed_dir"] = args.seed_dir
        settings = Settings(**overrides)  # type: ignore[arg-type]
        logging.basicConfig(
            level=logging.DEBUG if settings.debug else logging.INFO,
            format="%(levelname)-8s %(name)s: %(message)s",
        )
        try:
            result = asyncio.run(run_migration(settings, force=args.force))
        except (ConfigurationError, InternalServerError) as exc:
            print(f"Error: {exc}")
            sys.exit(1)
        print(
            f"Migration complete. {len(result.upserted)} upserted, "
            f"{len(result.skipped)} skipped."
        )
        for label in result.upserted:
            print(f"  Upserted: {label}")
        return

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
