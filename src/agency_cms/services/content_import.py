"""
# Content Import and Default Data

Two one-shot helpers that fill the content store from outside the admin API.

## Markdown import

`MarkdownImport` walks a directory for `*.mdx` files, reads each file's front matter with
`python-frontmatter` and creates one post per file through the post gateway:

- The slug is the file name without its extension. A slug already in the store is skipped,
  never overwritten.
- Front matter keys `title`, `excerpt`, `date`, `author`, `authorImage`/`author_image`,
  `coverImage`/`cover_image`, `category`, `tags`, `draft` and `featured` are read. Missing
  values fall back to `Untitled`, an empty excerpt, today, `Anonymous`, `Uncategorized`,
  no tags, published and not featured.
- Tags named by a post are created first when missing.
- A file that cannot be read or parsed, or whose post is rejected, is recorded and the run
  continues.

## Default data

`seed_default_data()` inserts the stock authors and categories when the store holds no
authors yet. Otherwise it does nothing.
"""

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import frontmatter
from pydantic import BaseModel, Field

from agency_cms.database.content_store import EntityKind
from agency_cms.exceptions import CMSError, DuplicateKey
from agency_cms.managers.logging_manager import get_logger
from agency_cms.services.content_service import ContentGateways
from agency_cms.services.migration_service import REPORT_WIDTH, parse_date
from agency_cms.utils.text import slugify

logger = get_logger(prefix="[ContentImport]")

POST_FILE_PATTERN = "*.mdx"
IMPORT_DEFAULT_TITLE = "Untitled"
IMPORT_DEFAULT_AUTHOR = "Anonymous"
IMPORT_DEFAULT_CATEGORY = "Uncategorized"

DEFAULT_AUTHORS: List[Dict[str, Any]] = [
    {
        "slug": "alessandro-dantoni",
        "name": "Alessandro D'Antoni",
        "bio": "Full-stack developer e technical writer appassionato di tecnologie web.",
        "avatar": "/images/authors/alessandro_avatar-min.webp",
        "email": "alessandro@almastack.it",
        "twitter": "@alessandro",
        "linkedin": "https://linkedin.com/in/alessandro-dantoni",
        "github": "https://github.com/alessandro",
    },
    {
        "slug": "manfredi-marrone",
        "name": "Manfredi Mauro Marrone",
        "bio": "Developer e specialista in architetture cloud e sistemi distribuiti.",
        "avatar": "/images/authors/manfredi_avatar-min.webp",
        "email": "manfredi@almastack.it",
        "twitter": "@manfredi",
        "linkedin": "https://linkedin.com/in/manfredi-marrone",
        "github": "https://github.com/manfredi",
    },
]

DEFAULT_CATEGORIES: List[Dict[str, Any]] = [
    {
        "slug": "cyber-security",
        "name": "Cyber Security",
        "description": "Articoli su sicurezza informatica e best practices",
        "color": "#DC2626",
        "icon": "\U0001F512",
    },
    {
        "slug": "web-development",
        "name": "Web Development",
        "description": "Guide e tutorial sullo sviluppo web moderno",
        "color": "#3B82F6",
        "icon": "\U0001F680",
    },
    {
        "slug": "cloud-computing",
        "name": "Cloud Computing",
        "description": "AWS, Azure, GCP e architetture cloud",
        "color": "#10B981",
        "icon": "\u2601\ufe0f",
    },
    {
        "slug": "ai-ml",
        "name": "AI & Machine Learning",
        "description": "Intelligenza artificiale e machine learning",
        "color": "#8B5CF6",
        "icon": "\U0001F916",
    },
    {
        "slug": "devops",
        "name": "DevOps",
        "description": "CI/CD, containerizzazione e automazione",
        "color": "#F59E0B",
        "icon": "\u2699\ufe0f",
    },
    {
        "slug": "database",
        "name": "Database",
        "description": "SQL, NoSQL e ottimizzazione database",
        "color": "#06B6D4",
        "icon": "\U0001F5C4\ufe0f",
    },
    {
        "slug": "mobile-dev",
        "name": "Mobile Development",
        "description": "React Native, Flutter e sviluppo mobile",
        "color": "#EC4899",
        "icon": "\U0001F4F1",
    },
    {
        "slug": "best-practices",
        "name": "Best Practices",
        "description": "Pattern, principi e metodologie",
        "color": "#84CC16",
        "icon": "\u2728",
    },
]


async def seed_default_data(gateways: ContentGateways) -> bool:
    """
    Insert the default authors and categories into an empty store.

    Returns:
        `True` when the defaults were inserted, `False` when authors already existed.
    """
    if await gateways.store.count(EntityKind.AUTHORS) > 0:
        logger.info("Default data already exists")
        return False

    logger.info("Initializing default data")
    for author in DEFAULT_AUTHORS:
        await gateways.authors.create(author)
    for category in DEFAULT_CATEGORIES:
        await gateways.categories.create(category)
    logger.info(
        "Default data initialized: %d authors, %d categories", len(DEFAULT_AUTHORS), len(DEFAULT_CATEGORIES)
    )
    return True


class ImportReport(BaseModel):
    imported: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def render(self) -> str:
        lines = ["=" * REPORT_WIDTH, "IMPORT REPORT", "=" * REPORT_WIDTH]
        for label, slugs in (("IMPORTED", self.imported), ("SKIPPED (already exists)", self.skipped)):
            lines.append(f"{label}: {len(slugs)}")
            lines.extend(f"  - {slug}" for slug in slugs)
        lines.append(f"FAILED: {len(self.failed)}")
        lines.extend(f"  - {error}" for error in self.errors)
        lines.append("=" * REPORT_WIDTH)
        return "\n".join(lines)


def _front_matter_date(value: Any) -> Optional[datetime]:
    # YAML turns bare dates into `date` objects.
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return parse_date(value)


def post_from_front_matter(slug: str, metadata: Dict[str, Any], content: str) -> Dict[str, Any]:
    """Post fields for one Markdown file, with the import defaults applied."""
    tags = metadata.get("tags") or []
    if isinstance(tags, str):
        tags = tags.split(",")
    return {
        "slug": slug,
        "title": metadata.get("title") or IMPORT_DEFAULT_TITLE,
        "content": content,
        "excerpt": metadata.get("excerpt") or "",
        "date": _front_matter_date(metadata.get("date")) or datetime.now(timezone.utc),
        "author": metadata.get("author") or IMPORT_DEFAULT_AUTHOR,
        "author_image": metadata.get("authorImage") or metadata.get("author_image"),
        "cover_image": metadata.get("coverImage") or metadata.get("cover_image"),
        "category": metadata.get("category") or IMPORT_DEFAULT_CATEGORY,
        "tags": [str(tag).strip() for tag in tags if str(tag).strip()],
        "draft": bool(metadata.get("draft", False)),
        "featured": bool(metadata.get("featured", False)),
    }


class MarkdownImport:
    """
    Imports front-matter Markdown posts from a directory tree.

    Args:
        gateways: Gateways over an open content store.
        directory: Root searched recursively for `*.mdx` files.
    """

    def __init__(self, gateways: ContentGateways, directory: str):
        self.gateways = gateways
        self.directory = Path(directory)
        self.report = ImportReport()

    def post_paths(self) -> List[Path]:
        if not self.directory.is_dir():
            logger.warning("Posts directory not found: %s", self.directory)
            return []
        return sorted(self.directory.rglob(POST_FILE_PATTERN))

    async def import_file(self, path: Path) -> str:
        """Import one file; returns `imported`, `skipped` or `failed`."""
        slug = slugify(path.stem)
        try:
            if await self.gateways.store.find_by_key(EntityKind.POSTS, slug) is not None:
                logger.warning("Post '%s' already exists, skipping", slug)
                self.report.skipped.append(slug)
                return "skipped"

            source = frontmatter.load(str(path))
            fields = post_from_front_matter(slug, dict(source.metadata), source.content)
            if fields["tags"]:
                await self.gateways.tags.create_many(fields["tags"])
            await self.gateways.posts.create(fields)
        except DuplicateKey:
            logger.warning("Post '%s' already exists, skipping", slug)
            self.report.skipped.append(slug)
            return "skipped"
        except CMSError as e:
            self._record_failure(slug, path, e.message)
            return "failed"
        except Exception as e:
            logger.error("Unexpected error importing %s", path, exc_info=True)
            self._record_failure(slug, path, str(e))
            return "failed"

        logger.info("Imported post '%s'", slug)
        self.report.imported.append(slug)
        return "imported"

    def _record_failure(self, slug: str, path: Path, reason: str) -> None:
        self.report.failed.append(slug)
        self.report.errors.append(f"{path.name}: {reason}")
        logger.error("Failed to import %s: %s", path, reason)

    async def run(self) -> ImportReport:
        paths = self.post_paths()
        logger.info("Found %d post files in %s", len(paths), self.directory)
        for path in paths:
            await self.import_file(path)
        logger.info(
            "Import finished: %d imported, %d skipped, %d failed",
            len(self.report.imported),
            len(self.report.skipped),
            len(self.report.failed),
        )
        return self.report
