"""
Tag persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any

_PUBLISHED_COUNT = """
    (SELECT count(*)
     FROM post_tags pt JOIN posts p ON p.id = pt.post_id
     WHERE pt.tag_id = t.id AND p.status = 'published')
"""


async def list_tags(store: Any, *, popular: bool = False, limit: int | None = None) -> list[dict[str, Any]]:
    """
    Tags with their published-post count.

    `popular` keeps only tags that carry at least one published post and
    orders by that count; otherwise tags are ordered by name.
    """
    where = f"WHERE {_PUBLISHED_COUNT} > 0" if popular else ""
    order_by = "blog_count DESC, t.name ASC" if popular else "t.name ASC"
    args: list[Any] = []
    limit_clause = ""
    if limit is not None:
        args.append(limit)
        limit_clause = "LIMIT $1"
    return await store.fetch_all(
        f"""
        SELECT t.id, t.name, t.slug, t.description, t.created_at,
               {_PUBLISHED_COUNT} AS blog_count
        FROM tags t
        {where}
        ORDER BY {order_by}
        {limit_clause}
        """,
        *args,
    )


async def get_by_slug(store: Any, slug: str) -> dict[str, Any] | None:
    return await store.fetch_one(
        "SELECT id, name, slug, description, created_at FROM tags WHERE slug = $1",
        slug,
    )
