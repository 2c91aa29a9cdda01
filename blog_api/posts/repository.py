"""
Post persistence (raw SQL).

Every function takes the store (a `Database` or an open `Transaction`) as its
first argument so the service can run it through the query executor.
"""

from __future__ import annotations

import json
from typing import Any

PREVIEW_COLUMNS = """
    p.id, p.slug, p.title, p.description, p.author, p.cover_image_url,
    p.published_at, p.read_time, p.created_at
"""

DETAIL_COLUMNS = """
    p.id, p.slug, p.title, p.description, p.author, p.cover_image_url,
    p.published_at, p.read_time, p.layout_type, p.max_width,
    p.show_table_of_contents, p.enable_voting, p.enable_social_share,
    p.enable_comments, p.status, p.created_at, p.updated_at
"""

_ORDER_BY = {
    "newest": "p.published_at DESC NULLS LAST, p.created_at DESC",
    "oldest": "p.published_at ASC NULLS LAST, p.created_at ASC",
    "popular": "upvotes DESC, p.published_at DESC NULLS LAST, p.created_at DESC",
}


def _json_arg(value: Any) -> str:
    """
    asyncpg does not encode dicts for jsonb parameters; pass text and cast.
    """
    return json.dumps(value, ensure_ascii=True)


def tag_slug(name: str) -> str:
    return "-".join(name.strip().lower().split())


def _listing_filters(
    *,
    tags: list[str] | None,
    author: str | None,
    search: str | None,
) -> tuple[str, list[Any]]:
    clauses = ["p.status = 'published'"]
    args: list[Any] = []

    if tags:
        args.append(tags)
        clauses.append(
            f"""EXISTS (
                SELECT 1 FROM post_tags pt JOIN tags t ON t.id = pt.tag_id
                WHERE pt.post_id = p.id AND t.slug = ANY(${len(args)}::text[])
            )"""
        )

    if author:
        args.append(author)
        clauses.append(f"p.author = ${len(args)}")

    if search:
        args.append(search)
        n = len(args)
        clauses.append(
            f"""(
                strpos(lower(p.title), lower(${n})) > 0
                OR strpos(lower(coalesce(p.description, '')), lower(${n})) > 0
                OR EXISTS (
                    SELECT 1 FROM post_tags pt JOIN tags t ON t.id = pt.tag_id
                    WHERE pt.post_id = p.id AND strpos(lower(t.name), lower(${n})) > 0
                )
            )"""
        )

    return " AND ".join(clauses), args


async def list_published(
    store: Any,
    *,
    limit: int,
    offset: int,
    sort: str = "newest",
    tags: list[str] | None = None,
    author: str | None = None,
    search: str | None = None,
) -> list[dict[str, Any]]:
    """
    One page of published post previews, each with its tag names.
    """
    where, args = _listing_filters(tags=tags, author=author, search=search)
    args.extend([limit, offset])
    order_by = _ORDER_BY.get(sort, _ORDER_BY["newest"])
    return await store.fetch_all(
        f"""
        SELECT
          {PREVIEW_COLUMNS},
          COALESCE(
            (SELECT array_agg(t.name ORDER BY t.name)
             FROM post_tags pt JOIN tags t ON t.id = pt.tag_id
             WHERE pt.post_id = p.id),
            ARRAY[]::text[]
          ) AS tag_names,
          (SELECT count(*) FROM votes v
           WHERE v.post_id = p.id AND v.vote_type = 'upvote') AS upvotes
        FROM posts p
        WHERE {where}
        ORDER BY {order_by}
        LIMIT ${len(args) - 1}
        OFFSET ${len(args)}
        """,
        *args,
    )


async def count_published(
    store: Any,
    *,
    tags: list[str] | None = None,
    author: str | None = None,
    search: str | None = None,
) -> int:
    where, args = _listing_filters(tags=tags, author=author, search=search)
    value = await store.fetch_val(f"SELECT count(*) FROM posts p WHERE {where}", *args)
    return int(value or 0)


async def find_slug(store: Any, slug: str) -> dict[str, Any] | None:
    """
    Point lookup used by the slug assigner.
    """
    return await store.fetch_one("SELECT slug FROM posts WHERE slug = $1", slug)


async def get_by_slug(store: Any, slug: str, *, published_only: bool = False) -> dict[str, Any] | None:
    status_clause = "AND p.status = 'published'" if published_only else ""
    return await store.fetch_one(
        f"""
        SELECT {DETAIL_COLUMNS}
        FROM posts p
        WHERE p.slug = $1
          {status_clause}
        """,
        slug,
    )


async def get_by_id(store: Any, post_id: Any) -> dict[str, Any] | None:
    return await store.fetch_one(
        f"""
        SELECT {DETAIL_COLUMNS}
        FROM posts p
        WHERE p.id = $1
        """,
        post_id,
    )


async def list_blocks(store: Any, post_id: Any) -> list[dict[str, Any]]:
    return await store.fetch_all(
        """
        SELECT id, post_id, block_type, block_order, content, created_at, updated_at
        FROM post_blocks
        WHERE post_id = $1
        ORDER BY block_order ASC, created_at ASC
        """,
        post_id,
    )


async def list_links(store: Any, post_id: Any) -> list[dict[str, Any]]:
    return await store.fetch_all(
        """
        SELECT id, post_id, label, url, link_type, link_order, created_at
        FROM post_links
        WHERE post_id = $1
        ORDER BY link_order ASC
        """,
        post_id,
    )


async def list_tag_names(store: Any, post_id: Any) -> list[str]:
    rows = await store.fetch_all(
        """
        SELECT t.name
        FROM post_tags pt
        JOIN tags t ON t.id = pt.tag_id
        WHERE pt.post_id = $1
        ORDER BY t.name
        """,
        post_id,
    )
    return [str(r["name"]) for r in rows]


async def count_approved_comments(store: Any, post_id: Any) -> int:
    value = await store.fetch_val(
        "SELECT count(*) FROM comments WHERE post_id = $1 AND status = 'approved'",
        post_id,
    )
    return int(value or 0)


async def insert_post(store: Any, values: dict[str, Any]) -> dict[str, Any]:
    row = await store.fetch_one(
        """
        INSERT INTO posts (
          slug, title, description, author, cover_image_url, published_at,
          read_time, layout_type, max_width, show_table_of_contents,
          enable_voting, enable_social_share, enable_comments, status
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
        RETURNING id, slug
        """,
        values["slug"],
        values["title"],
        values.get("description"),
        values.get("author"),
        values.get("cover_image_url"),
        values.get("published_at"),
        values.get("read_time"),
        values.get("layout_type", "single-column"),
        values.get("max_width", "800px"),
        values.get("show_table_of_contents", False),
        values.get("enable_voting", True),
        values.get("enable_social_share", True),
        values.get("enable_comments", True),
        values.get("status", "published"),
    )
    if row is None:
        raise RuntimeError("Failed to insert post.")
    return row


_UPDATABLE_COLUMNS = (
    "slug",
    "title",
    "description",
    "author",
    "cover_image_url",
    "published_at",
    "read_time",
    "layout_type",
    "max_width",
    "show_table_of_contents",
    "enable_voting",
    "enable_social_share",
    "enable_comments",
    "status",
)


async def update_post(store: Any, post_id: Any, values: dict[str, Any]) -> dict[str, Any] | None:
    """
    Update only the columns present in `values`.
    """
    columns = [c for c in _UPDATABLE_COLUMNS if c in values]
    args: list[Any] = [post_id]
    assignments = []
    for column in columns:
        args.append(values[column])
        assignments.append(f"{column} = ${len(args)}")
    assignments.append("updated_at = now()")
    return await store.fetch_one(
        f"""
        UPDATE posts
        SET {", ".join(assignments)}
        WHERE id = $1
        RETURNING id, slug
        """,
        *args,
    )


async def delete_by_slug(store: Any, slug: str) -> dict[str, Any] | None:
    return await store.fetch_one("DELETE FROM posts WHERE slug = $1 RETURNING id", slug)


async def get_or_create_tag(store: Any, name: str) -> dict[str, Any]:
    """
    Insert the tag if its slug is new; return the stored row either way.
    """
    row = await store.fetch_one(
        """
        INSERT INTO tags (name, slug)
        VALUES ($1, $2)
        ON CONFLICT (slug) DO UPDATE
        SET slug = EXCLUDED.slug
        RETURNING id, name, slug
        """,
        name.strip(),
        tag_slug(name),
    )
    if row is None:
        raise RuntimeError("Failed to upsert tag.")
    return row


async def replace_tags(store: Any, post_id: Any, names: list[str]) -> None:
    await store.execute("DELETE FROM post_tags WHERE post_id = $1", post_id)
    seen: set[str] = set()
    for name in names:
        if not name.strip() or tag_slug(name) in seen:
            continue
        seen.add(tag_slug(name))
        tag = await get_or_create_tag(store, name)
        await store.execute(
            "INSERT INTO post_tags (post_id, tag_id) VALUES ($1, $2) ON CONFLICT DO NOTHING",
            post_id,
            tag["id"],
        )


async def replace_links(store: Any, post_id: Any, links: list[dict[str, Any]]) -> None:
    await store.execute("DELETE FROM post_links WHERE post_id = $1", post_id)
    for index, link in enumerate(links):
        await store.execute(
            """
            INSERT INTO post_links (post_id, label, url, link_type, link_order)
            VALUES ($1, $2, $3, $4, $5)
            """,
            post_id,
            link["label"],
            link["url"],
            link.get("type") or "external",
            index,
        )


async def replace_blocks(store: Any, post_id: Any, blocks: list[dict[str, Any]]) -> None:
    await store.execute("DELETE FROM post_blocks WHERE post_id = $1", post_id)
    for index, block in enumerate(blocks):
        order = block.get("order")
        await store.execute(
            """
            INSERT INTO post_blocks (post_id, block_type, block_order, content)
            VALUES ($1, $2, $3, $4::jsonb)
            """,
            post_id,
            block["type"],
            order if order is not None else index,
            _json_arg(block.get("content") or {}),
        )
