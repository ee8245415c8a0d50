"""Tests for the Markdown post import, default data seeding and their CLI."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from pymongo.errors import ServerSelectionTimeoutError
import pytest

from agency_cms.cli import content_cli
from agency_cms.database.content_store import ContentStore, EntityKind
from agency_cms.services.content_import import (
    DEFAULT_AUTHORS,
    DEFAULT_CATEGORIES,
    MarkdownImport,
    post_from_front_matter,
    seed_default_data,
)

from conftest import FakeDatabaseManager, make_settings

HELLO_WORLD = """---
title: Hello World
excerpt: First post
date: 2024-01-15
author: Ada Lovelace
coverImage: /images/blog/hello.png
category: Web Development
tags:
  - React
  - Security
featured: true
---
Welcome to the new blog.
"""


def write_posts(directory, files):
    for name, text in files.items():
        path = directory / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return str(directory)


# ============================================================================
# Front matter mapping
# ============================================================================


def test_post_from_front_matter_defaults():
    fields = post_from_front_matter("bare", {}, "Body")

    assert fields["title"] == "Untitled"
    assert fields["author"] == "Anonymous"
    assert fields["category"] == "Uncategorized"
    assert fields["excerpt"] == ""
    assert fields["tags"] == []
    assert fields["draft"] is False
    assert fields["featured"] is False
    assert fields["date"].tzinfo is not None


def test_post_from_front_matter_reads_camel_case_images_and_comma_tags():
    fields = post_from_front_matter(
        "x", {"authorImage": "/a.png", "cover_image": "/c.png", "tags": "one, two"}, ""
    )
    assert fields["author_image"] == "/a.png"
    assert fields["cover_image"] == "/c.png"
    assert fields["tags"] == ["one", "two"]


# ============================================================================
# Markdown import
# ============================================================================


@pytest.mark.asyncio
async def test_import_creates_posts_and_their_tags(tmp_path, gateways):
    directory = write_posts(
        tmp_path / "blog",
        {
            "hello-world.mdx": HELLO_WORLD,
            "nested/second.mdx": "Just a body with no front matter.\n",
            "notes.md": "---\ntitle: Not imported\n---\n",
        },
    )

    report = await MarkdownImport(gateways, directory).run()

    assert sorted(report.imported) == ["hello-world", "second"]
    assert report.skipped == []
    assert report.failed == []

    post = await gateways.posts.get("hello-world")
    assert post["title"] == "Hello World"
    assert post["date"] == datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert post["content"].strip() == "Welcome to the new blog."
    assert post["cover_image"] == "/images/blog/hello.png"
    assert post["tags"] == ["react", "security"]
    assert post["draft"] is False
    assert post["featured"] is True
    assert post["reading_time"] == "1 min"
    assert (await gateways.tags.get("react"))["name"] == "React"

    second = await gateways.posts.get("second")
    assert second["title"] == "Untitled"
    assert second["author"] == "Anonymous"
    assert second["category"] == "Uncategorized"

    assert await gateways.store.count(EntityKind.POSTS) == 2


@pytest.mark.asyncio
async def test_import_skips_existing_slugs(tmp_path, gateways):
    await gateways.posts.create({"slug": "hello-world", "title": "Kept", "content": "Original"})
    directory = write_posts(tmp_path / "blog", {"hello-world.mdx": HELLO_WORLD})

    report = await MarkdownImport(gateways, directory).run()

    assert report.skipped == ["hello-world"]
    assert report.imported == []
    post = await gateways.posts.get("hello-world")
    assert post["title"] == "Kept"
    assert post["content"] == "Original"


@pytest.mark.asyncio
async def test_import_records_bad_files_and_continues(tmp_path, gateways):
    directory = write_posts(
        tmp_path / "blog",
        {
            "a-broken.mdx": "---\ntitle: [unclosed\n---\nBody\n",
            "b-bad-date.mdx": "---\ntitle: Bad Date\ndate: someday\n---\nBody\n",
            "c-good.mdx": "---\ntitle: Good\n---\nBody\n",
        },
    )

    report = await MarkdownImport(gateways, directory).run()

    assert report.imported == ["c-good"]
    assert report.failed == ["a-broken", "b-bad-date"]
    assert report.has_failures is True
    assert any(error.startswith("b-bad-date.mdx: Invalid date") for error in report.errors)
    assert "FAILED: 2" in report.render()


@pytest.mark.asyncio
async def test_import_from_missing_directory_does_nothing(tmp_path, gateways):
    report = await MarkdownImport(gateways, str(tmp_path / "nowhere")).run()
    assert report.imported == report.skipped == report.failed == []


# ============================================================================
# Default data
# ============================================================================


@pytest.mark.asyncio
async def test_seed_fills_an_empty_store_once(gateways):
    assert await seed_default_data(gateways) is True

    assert await gateways.store.count(EntityKind.AUTHORS) == len(DEFAULT_AUTHORS)
    assert await gateways.store.count(EntityKind.CATEGORIES) == len(DEFAULT_CATEGORIES)
    author = await gateways.authors.get("alessandro-dantoni")
    assert author["name"] == "Alessandro D'Antoni"
    category = await gateways.categories.get("ai-ml")
    assert category["name"] == "AI & Machine Learning"
    assert category["color"] == "#8B5CF6"

    assert await seed_default_data(gateways) is False
    assert await gateways.store.count(EntityKind.AUTHORS) == len(DEFAULT_AUTHORS)


@pytest.mark.asyncio
async def test_seed_leaves_a_store_with_authors_alone(gateways):
    await gateways.authors.create({"name": "Existing Author"})

    assert await seed_default_data(gateways) is False
    assert await gateways.store.count(EntityKind.CATEGORIES) == 0


# ============================================================================
# CLI
# ============================================================================


def run_cli(settings, manager, argv):
    with patch.object(content_cli, "ContentStore", lambda s: ContentStore(manager=manager)):
        with pytest.raises(SystemExit) as exc_info:
            content_cli.main(argv, settings=settings)
    return exc_info.value.code


def test_cli_requires_database_url(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        content_cli.main(["seed"], settings=make_settings(tmp_path, MONGODB_URL=""))
    assert exc_info.value.code == 1
    assert "MONGODB_URL" in capsys.readouterr().err


def test_cli_parser_defaults_to_content_blog():
    args = content_cli.build_parser().parse_args(["import-posts"])
    assert args.command == "import-posts"
    assert args.directory == "content/blog"


def test_cli_seed_then_import(tmp_path, capsys):
    settings = make_settings(tmp_path)
    manager = FakeDatabaseManager(settings)
    directory = write_posts(tmp_path / "blog", {"hello-world.mdx": HELLO_WORLD})

    assert run_cli(settings, manager, ["seed"]) == 0
    assert "Default data initialized" in capsys.readouterr().out

    assert run_cli(settings, manager, ["import-posts", directory]) == 0
    assert "IMPORTED: 1" in capsys.readouterr().out

    posts = manager.backend["posts"].docs
    assert [(post["slug"], post["title"]) for post in posts] == [("hello-world", "Hello World")]
    assert len(manager.backend["categories"].docs) == len(DEFAULT_CATEGORIES)


def test_cli_exits_one_when_a_file_fails(tmp_path):
    settings = make_settings(tmp_path)
    manager = FakeDatabaseManager(settings)
    directory = write_posts(tmp_path / "blog", {"broken.mdx": "---\ntitle: [unclosed\n---\n"})

    assert run_cli(settings, manager, ["import-posts", directory]) == 1


def test_cli_exits_one_when_database_unreachable(tmp_path, capsys):
    settings = make_settings(tmp_path)
    manager = FakeDatabaseManager(settings)
    manager.connect = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers available"))

    assert run_cli(settings, manager, ["seed"]) == 1
    assert "Cannot connect to MongoDB" in capsys.readouterr().err
