"""Tests for the in-memory list pipeline and the list view controller."""

from datetime import datetime, timedelta, timezone

import pytest

from agency_cms.exceptions import NotFound
from agency_cms.services.admin_views import (
    ListQuery,
    ListViewController,
    build_entity_list,
    build_post_list,
    compute_usage,
    filter_posts,
    paginate,
    search_entities,
    sort_items,
    sort_tags_by_usage,
)

BASE = datetime(2024, 3, 1, tzinfo=timezone.utc)


def make_posts(count=25):
    posts = []
    for index in range(count):
        posts.append(
            {
                "slug": f"post-{index}",
                "title": f"Post {index}",
                "excerpt": "about python" if index % 3 == 0 else "about go",
                "tags": ["python"] if index % 3 == 0 else ["go"],
                "category": "Web" if index % 2 == 0 else "Cloud",
                "author": "Ada" if index < 10 else "Bob",
                "draft": index % 4 == 0,
                "featured": index % 5 == 0,
                "date": BASE + timedelta(days=index % 7),
            }
        )
    return posts


def test_filter_posts_search_and_status():
    posts = make_posts()

    assert {p["slug"] for p in filter_posts(posts, q="PYTHON")} == {p["slug"] for p in posts if p["tags"] == ["python"]}
    assert all(not p["draft"] for p in filter_posts(posts, status="published"))
    assert all(p["draft"] for p in filter_posts(posts, status="draft"))
    assert all(p["featured"] for p in filter_posts(posts, status="featured"))
    assert all(p["category"] == "Web" for p in filter_posts(posts, category="Web"))
    assert len(filter_posts(posts, category="all")) == 25
    assert all(p["author"] == "Bob" for p in filter_posts(posts, author="Bob"))
    assert filter_posts(posts, q="post-7") == [posts[7]]


def test_sort_is_stable_in_both_directions():
    items = [{"k": 1, "id": "a"}, {"k": 2, "id": "b"}, {"k": 1, "id": "c"}, {"k": 2, "id": "d"}]

    assert [i["id"] for i in sort_items(items, "k")] == ["a", "c", "b", "d"]
    assert [i["id"] for i in sort_items(items, "k", descending=True)] == ["b", "d", "a", "c"]


def test_sort_puts_missing_values_first_and_parses_iso_dates():
    items = [
        {"id": "late", "date": "2024-05-01T00:00:00Z"},
        {"id": "none"},
        {"id": "early", "date": datetime(2024, 1, 1, tzinfo=timezone.utc)},
    ]
    assert [i["id"] for i in sort_items(items, "date")] == ["none", "early", "late"]
    assert [i["id"] for i in sort_items(items, None)] == ["late", "none", "early"]


def test_sort_is_case_insensitive_for_strings():
    items = [{"name": "beta"}, {"name": "Alpha"}, {"name": "gamma"}]
    assert [i["name"] for i in sort_items(items, "name")] == ["Alpha", "beta", "gamma"]


def test_paginate_clamps_page():
    items = [{"i": n} for n in range(23)]

    page = paginate(items, 3, 10)
    assert page.total == 23 and page.total_pages == 3
    assert [i["i"] for i in page.items] == [20, 21, 22]

    assert paginate(items, 99, 10).page == 3
    assert paginate(items, 0, 10).page == 1
    empty = paginate([], 5, 10)
    assert empty.page == 1 and empty.total_pages == 1 and empty.items == []


def test_build_post_list_is_deterministic():
    posts = make_posts()
    query = ListQuery(q="about", status="published", sort="date", order="desc", page=2, page_size=5)

    first = build_post_list(posts, query)
    second = build_post_list(list(posts), query)

    assert first == second
    assert first.page == 2
    assert len(first.items) == 5


def test_build_post_list_defaults_to_date_sort():
    posts = make_posts(7)
    page = build_post_list(posts, ListQuery(sort="views"))
    assert [p["date"] for p in page.items] == sorted((p["date"] for p in posts), reverse=True)


def test_search_entities_and_build_entity_list():
    authors = [{"name": "Ada", "bio": "Engines"}, {"name": "Bob", "bio": "Gardens"}, {"name": "Eve", "bio": None}]
    assert search_entities(authors, "engine", ("name", "bio")) == [authors[0]]
    assert search_entities(authors, "", ("name",)) == authors

    page = build_entity_list(authors, ListQuery(sort="name", order="asc", page_size=2), ("name", "bio"))
    assert [a["name"] for a in page.items] == ["Ada", "Bob"]
    assert page.total_pages == 2


def test_entity_list_ignores_sort_keys_outside_the_allow_list():
    items = [
        {"name": "b", "metadata": {"x": 1}, "size": 20},
        {"name": "a", "metadata": {"y": 2}, "size": 10},
    ]

    page = build_entity_list(items, ListQuery(sort="metadata"), ("name",))
    assert [i["name"] for i in page.items] == ["b", "a"]

    page = build_entity_list(items, ListQuery(sort="size", order="asc"), ("name",), ("name", "size"))
    assert [i["name"] for i in page.items] == ["a", "b"]

    controller = ListViewController(items, search_fields=("name",), sort_fields=("size",))
    controller.set_query(sort="metadata")
    assert [i["name"] for i in controller.current_page().items] == ["b", "a"]


def test_usage_counts_and_tag_ordering():
    posts = [{"tags": ["python", "go"], "author": "Ada"}, {"tags": ["python"], "author": None}]
    assert compute_usage(posts, "tags") == {"python": 2, "go": 1}
    assert compute_usage(posts, "author") == {"Ada": 1}

    tags = [{"name": "Go"}, {"name": "Rust"}, {"name": "Python"}]
    assert [t["name"] for t in sort_tags_by_usage(tags, compute_usage(posts, "tags"))] == ["Python", "Go", "Rust"]


def test_query_change_resets_page_but_page_change_does_not():
    controller = ListViewController(make_posts(), page_size=5)

    page = controller.go_to_page(3)
    assert page.page == 3

    controller.set_query(q="about")
    assert controller.query.page == 1

    controller.set_query(page=2)
    controller.set_query(status="draft")
    assert controller.query.page == 1


def test_selection_helpers():
    controller = ListViewController(make_posts(), page_size=5)

    controller.select_page()
    assert len(controller.selected) == 5

    key = next(iter(controller.selected))
    controller.toggle_select(key)
    assert key not in controller.selected
    controller.toggle_select(key)
    assert key in controller.selected

    controller.clear_selection()
    assert controller.selected == set()


@pytest.mark.asyncio
async def test_bulk_delete_reports_partial_failure():
    items = [{"slug": "a"}, {"slug": "b"}, {"slug": "c"}]
    controller = ListViewController(items, search_fields=("slug",))
    controller.selected.update({"a", "b", "c"})
    deleted = []

    async def delete(key):
        if key == "b":
            raise NotFound("Post not found")
        deleted.append(key)

    results = await controller.bulk_delete(delete)

    assert [(r.key, r.success, r.error) for r in results] == [
        ("a", True, None),
        ("b", False, "Post not found"),
        ("c", True, None),
    ]
    assert deleted == ["a", "c"]
    assert controller.items == [{"slug": "b"}]
    assert controller.selected == set()
    assert [n.kind for n in controller.notifications] == ["success", "error"]
    assert controller.notifications[0].message == "2 item(s) deleted"


@pytest.mark.asyncio
async def test_bulk_delete_collects_unexpected_errors():
    controller = ListViewController([{"filename": "x.png"}], key_field="filename", search_fields=("filename",))
    controller.toggle_select("x.png")

    async def delete(key):
        raise RuntimeError("disk on fire")

    results = await controller.bulk_delete(delete)

    assert results[0].success is False
    assert results[0].error == "disk on fire"
    assert controller.items == [{"filename": "x.png"}]
    assert [n.kind for n in controller.notifications] == ["error"]
