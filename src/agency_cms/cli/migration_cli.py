"""
Command-line interface for the one-shot SQLite → MongoDB migration.

    agency-cms-migrate [--clear] [--source PATH]

The destination comes from `MONGODB_URL` (plus the usual pool settings); the source defaults
to `SQLITE_DB_PATH`. Exit status is 1 when the destination is not configured or either
database cannot be opened, 0 otherwise. Row-level failures are reported, not fatal.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from agency_cms.config import Settings
from agency_cms.database.content_store import ContentStore
from agency_cms.managers.logging_manager import get_logger
from agency_cms.services.migration_service import MigrationAborted, SqliteToMongoMigration

logger = get_logger(prefix="[MigrationCLI]")


async def run_migration(settings: Settings, source: str, clear_first: bool) -> bool:
    """Run the migration and print the report; `False` when it was aborted."""
    store = ContentStore(settings)
    migration = SqliteToMongoMigration(store, source)
    try:
        report = await migration.run(clear_first=clear_first)
    except MigrationAborted as e:
        logger.error("Migration aborted: %s", e.message)
        print(f"Migration aborted: {e.message}", file=sys.stderr)
        return False

    print(report.render())
    if report.has_failures:
        logger.warning("Migration completed with %d failed rows", len(report.errors))
    else:
        logger.info("Migration completed successfully")
    return True


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agency-cms-migrate",
        description="Copy the legacy SQLite blog database into MongoDB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Environment:\n"
            "  MONGODB_URL       destination connection string (required)\n"
            "  MONGODB_DATABASE  destination database name\n"
            "  SQLITE_DB_PATH    default source database file\n"
        ),
    )
    parser.add_argument(
        "-c",
        "--clear",
        action="store_true",
        help="Delete all posts, authors, categories, tags and media in MongoDB before migrating",
    )
    parser.add_argument(
        "--source",
        default=settings.SQLITE_DB_PATH,
        help=f"Path of the SQLite database (default: {settings.SQLITE_DB_PATH})",
    )
    return parser


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> None:
    """Main CLI entry point."""
    settings = settings or Settings()
    parser = build_parser(settings)
    args = parser.parse_args(argv)

    if not settings.MONGODB_URL:
        print("MONGODB_URL is not set; cannot reach the destination database.", file=sys.stderr)
        sys.exit(1)

    success = asyncio.run(run_migration(settings, args.source, args.clear))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
