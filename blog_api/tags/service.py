"""
Tag business logic.
"""

from __future__ import annotations

from typing import Any

from blog_api.core.errors import NotFoundError
from blog_api.core.retry import QueryExecutor
from blog_api.posts import service as post_service

from . import repository


def to_public(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "name": row["name"],
        "slug": row["slug"],
        "description": row.get("description"),
    }


async def list_tags(executor: QueryExecutor, *, popular: bool = False, limit: int | None = None) -> list[dict[str, Any]]:
    rows = await executor.call(repository.list_tags, popular=popular, limit=limit)
    tags = []
    for row in rows:
        item = to_public(row)
        item["blogCount"] = int(row.get("blog_count") or 0)
        tags.append(item)
    return tags


async def posts_for_tag(
    executor: QueryExecutor,
    slug: str,
    *,
    page: int = 1,
    limit: int = 10,
) -> tuple[dict[str, Any], list[dict[str, Any]], int]:
    tag = await executor.call(repository.get_by_slug, slug)
    if tag is None:
        raise NotFoundError("Tag not found")
    posts, total = await post_service.list_posts(executor, page=page, limit=limit, tags=[slug])
    return to_public(tag), posts, total
