"""
Command-line interface for filling the content store outside the admin API.

    agency-cms-content seed
    agency-cms-content import-posts [DIRECTORY]

`seed` inserts the default authors and categories into an empty store. `import-posts` creates
one post per `*.mdx` file under DIRECTORY (default `content/blog`), skipping slugs that already
exist. Exit status is 1 when MongoDB is not configured or cannot be reached, or when any file
failed to import, 0 otherwise.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from pymongo.errors import PyMongoError

from agency_cms.config import Settings
from agency_cms.database.content_store import ContentStore
from agency_cms.exceptions import CMSError
from agency_cms.managers.logging_manager import get_logger
from agency_cms.services.content_import import MarkdownImport, seed_default_data
from agency_cms.services.content_service import ContentGateways

logger = get_logger(prefix="[ContentCLI]")

DEFAULT_POSTS_DIRECTORY = "content/blog"


async def run_command(settings: Settings, args: argparse.Namespace, store: Optional[ContentStore] = None) -> bool:
    """Open the store, run one subcommand and close it again; `False` on failure."""
    store = store or ContentStore(settings)
    try:
        await store.open()
    except (PyMongoError, CMSError) as e:
        logger.error("Failed to connect to MongoDB: %s", e)
        print("Cannot connect to MongoDB", file=sys.stderr)
        return False

    gateways = ContentGateways(store, settings)
    try:
        if args.command == "seed":
            seeded = await seed_default_data(gateways)
            print("Default data initialized" if seeded else "Default data already exists")
            return True

        report = await MarkdownImport(gateways, args.directory).run()
        print(report.render())
        return not report.has_failures
    except CMSError as e:
        logger.error("%s failed: %s", args.command, e.message)
        print(f"{args.command} failed: {e.message}", file=sys.stderr)
        return False
    finally:
        await store.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agency-cms-content",
        description="Seed default data or import Markdown posts into MongoDB",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("seed", help="Insert the default authors and categories into an empty store")
    import_parser = subparsers.add_parser("import-posts", help="Import front-matter .mdx posts")
    import_parser.add_argument(
        "directory",
        nargs="?",
        default=DEFAULT_POSTS_DIRECTORY,
        help=f"Directory searched recursively for .mdx files (default: {DEFAULT_POSTS_DIRECTORY})",
    )
    return parser


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> None:
    """Main CLI entry point."""
    settings = settings or Settings()
    args = build_parser().parse_args(argv)

    if not settings.MONGODB_URL:
        print("MONGODB_URL is not set; cannot reach the database.", file=sys.stderr)
        sys.exit(1)

    success = asyncio.run(run_command(settings, args))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
