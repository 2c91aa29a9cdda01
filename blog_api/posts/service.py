"""
Post business logic.

Flow for writes:
1) resolve a unique slug (SlugAssigner, probes run through the executor)
2) write post + tags + links + blocks in one transaction, retried as a unit
3) if the slug lost a race on the unique index, assign again

Reads issue each lookup through the executor.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime, timezone
from typing import Any

import asyncpg

from blog_api.core.errors import ConflictError, NotFoundError, ValidationFailed
from blog_api.core.retry import QueryExecutor
from blog_api.votes import repository as vote_repository

from . import repository, schemas
from .read_time import calculate_read_time
from .slugs import SlugAssigner, SlugError

logger = logging.getLogger(__name__)

SLUG_ASSIGN_ROUNDS = 3
SLUG_CONSTRAINT = "posts_slug_key"
SHARE_PLATFORMS = ["twitter", "facebook", "linkedin", "copy"]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Any) -> str | None:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _json_value(value: Any) -> Any:
    # jsonb comes back from asyncpg as text unless a codec is registered.
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


def pagination(page: int, limit: int, total: int) -> dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "totalPages": total_pages(total, limit)}


def slug_assigner(executor: QueryExecutor) -> SlugAssigner:
    return SlugAssigner(
        lambda candidate: repository.find_slug(executor.store, candidate),
        executor=executor,
    )


def to_preview(row: dict[str, Any], tags: list[str]) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "slug": row["slug"],
        "meta": {
            "title": row["title"],
            "description": row.get("description"),
            "author": row.get("author"),
            "publishedAt": _iso(row.get("published_at")),
            "readTime": row.get("read_time"),
            "coverImage": row.get("cover_image_url"),
        },
        "tags": list(tags),
    }


def _to_link(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "label": row["label"],
        "url": row["url"],
        "type": row["link_type"],
        "order": row["link_order"],
    }


def _to_block(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "type": row["block_type"],
        "order": row["block_order"],
        "content": _json_value(row["content"]),
    }


def to_detail(
    row: dict[str, Any],
    *,
    tags: list[str],
    blocks: list[dict[str, Any]],
    links: list[dict[str, Any]],
    comments_count: int,
    votes: dict[str, Any],
) -> dict[str, Any]:
    detail = to_preview(row, tags)
    detail.update(
        {
            "status": row.get("status"),
            "layout": {
                "type": row["layout_type"],
                "maxWidth": row["max_width"],
                "showTableOfContents": bool(row["show_table_of_contents"]),
            },
            "settings": {
                "enableVoting": bool(row["enable_voting"]),
                "enableSocialShare": bool(row["enable_social_share"]),
                "enableComments": bool(row["enable_comments"]),
            },
            "commentsCount": comments_count,
            "links": [_to_link(link) for link in links],
            "blocks": [_to_block(block) for block in blocks],
            "voting": {
                "enabled": bool(row["enable_voting"]),
                "upvotes": votes["upvotes"],
                "downvotes": votes["downvotes"],
                "userVote": votes.get("user_vote"),
            },
            "socialShare": {
                "enabled": bool(row["enable_social_share"]),
                "platforms": list(SHARE_PLATFORMS),
            },
        }
    )
    return detail


async def list_posts(
    executor: QueryExecutor,
    *,
    page: int = 1,
    limit: int = 10,
    sort: str = "newest",
    tags: list[str] | None = None,
    author: str | None = None,
    search: str | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """
    One page of published post previews plus the total match count.
    """
    filters = {"tags": tags or None, "author": author or None, "search": search or None}
    rows = await executor.call(
        repository.list_published,
        limit=limit,
        offset=(page - 1) * limit,
        sort=sort,
        **filters,
    )
    total = await executor.call(repository.count_published, **filters)
    posts = [to_preview(row, row.get("tag_names") or []) for row in rows]
    return posts, total


async def _load_detail(
    executor: QueryExecutor,
    row: dict[str, Any],
    *,
    ip_address: str | None = None,
    session_id: str | None = None,
) -> dict[str, Any]:
    post_id = row["id"]
    tags = await executor.call(repository.list_tag_names, post_id)
    blocks = await executor.call(repository.list_blocks, post_id)
    links = await executor.call(repository.list_links, post_id)
    comments_count = await executor.call(repository.count_approved_comments, post_id)
    votes: dict[str, Any] = await executor.call(vote_repository.vote_counts, post_id)
    user_vote = await executor.call(
        vote_repository.find_vote,
        post_id,
        ip_address=ip_address,
        session_id=session_id,
    )
    votes["user_vote"] = user_vote["vote_type"] if user_vote else None
    return to_detail(
        row,
        tags=tags,
        blocks=blocks,
        links=links,
        comments_count=comments_count,
        votes=votes,
    )


async def get_post(
    executor: QueryExecutor,
    slug: str,
    *,
    ip_address: str | None = None,
    session_id: str | None = None,
) -> dict[str, Any] | None:
    """
    Published post detail, or None.
    """
    row = await executor.call(repository.get_by_slug, slug, published_only=True)
    if row is None:
        return None
    return await _load_detail(executor, row, ip_address=ip_address, session_id=session_id)


async def _detail_by_slug(executor: QueryExecutor, slug: str) -> dict[str, Any]:
    # Admin writes return the post whatever its status.
    row = await executor.call(repository.get_by_slug, slug)
    if row is None:
        raise RuntimeError(f"Post '{slug}' vanished after write.")
    return await _load_detail(executor, row)


def _blocks_payload(blocks: list[schemas.BlockIn]) -> list[dict[str, Any]]:
    return [block.model_dump() for block in blocks]


def _links_payload(links: list[schemas.LinkIn]) -> list[dict[str, Any]]:
    return [link.model_dump() for link in links]


def _create_values(payload: schemas.PostCreate) -> dict[str, Any]:
    layout = payload.layout or schemas.LayoutIn()
    settings = payload.settings or schemas.SettingsIn()
    blocks = _blocks_payload(payload.blocks or [])
    return {
        "title": payload.title,
        "description": payload.description or None,
        "author": payload.author or None,
        "cover_image_url": payload.cover_image or None,
        "published_at": _utc_now() if payload.status == "published" else None,
        "read_time": calculate_read_time(blocks) if blocks else None,
        "layout_type": layout.type or "single-column",
        "max_width": layout.max_width or "800px",
        "show_table_of_contents": bool(layout.show_table_of_contents),
        "enable_voting": settings.enable_voting is not False,
        "enable_social_share": settings.enable_social_share is not False,
        "enable_comments": settings.enable_comments is not False,
        "status": payload.status,
    }


def _is_slug_conflict(exc: asyncpg.UniqueViolationError) -> bool:
    return getattr(exc, "constraint_name", None) == SLUG_CONSTRAINT


async def _assign_slug(executor: QueryExecutor, title: str, existing_slug: str | None = None) -> str:
    try:
        return await slug_assigner(executor).assign(title, existing_slug=existing_slug)
    except SlugError as exc:
        raise ValidationFailed(str(exc), details={"fields": {"title": [str(exc)]}}) from exc


async def create_post(executor: QueryExecutor, payload: schemas.PostCreate) -> dict[str, Any]:
    values = _create_values(payload)
    tags = payload.tags or []
    links = _links_payload(payload.links or [])
    blocks = _blocks_payload(payload.blocks or [])

    async def write() -> dict[str, Any]:
        async with executor.store.transaction() as tx:
            row = await repository.insert_post(tx, values)
            await repository.replace_tags(tx, row["id"], tags)
            await repository.replace_links(tx, row["id"], links)
            await repository.replace_blocks(tx, row["id"], blocks)
            return row

    for round_no in range(1, SLUG_ASSIGN_ROUNDS + 1):
        values["slug"] = payload.slug or await _assign_slug(executor, payload.title)
        try:
            row = await executor.run(write)
        except asyncpg.UniqueViolationError as exc:
            if not _is_slug_conflict(exc):
                raise
            if payload.slug or round_no == SLUG_ASSIGN_ROUNDS:
                raise ConflictError(f"Slug '{values['slug']}' is already taken") from exc
            logger.info("slug_taken_retry slug=%s round=%s", values["slug"], round_no)
            continue
        logger.info("post_created id=%s slug=%s", row["id"], row["slug"])
        return await _detail_by_slug(executor, row["slug"])

    raise ConflictError("Could not assign a unique slug")


def _update_values(existing: dict[str, Any], payload: schemas.PostUpdate) -> dict[str, Any]:
    values: dict[str, Any] = {}
    if payload.title is not None:
        values["title"] = payload.title
    if payload.description is not None:
        values["description"] = payload.description
    if payload.author is not None:
        values["author"] = payload.author
    if payload.cover_image is not None:
        values["cover_image_url"] = payload.cover_image
    if payload.status is not None:
        values["status"] = payload.status
        if payload.status == "published" and existing.get("published_at") is None:
            values["published_at"] = _utc_now()
    if payload.layout is not None:
        if payload.layout.type is not None:
            values["layout_type"] = payload.layout.type
        if payload.layout.max_width is not None:
            values["max_width"] = payload.layout.max_width
        if payload.layout.show_table_of_contents is not None:
            values["show_table_of_contents"] = payload.layout.show_table_of_contents
    if payload.settings is not None:
        if payload.settings.enable_voting is not None:
            values["enable_voting"] = payload.settings.enable_voting
        if payload.settings.enable_social_share is not None:
            values["enable_social_share"] = payload.settings.enable_social_share
        if payload.settings.enable_comments is not None:
            values["enable_comments"] = payload.settings.enable_comments
    if payload.blocks:
        values["read_time"] = calculate_read_time(_blocks_payload(payload.blocks))
    return values


async def update_post(executor: QueryExecutor, slug: str, payload: schemas.PostUpdate) -> dict[str, Any]:
    existing = await executor.call(repository.get_by_slug, slug)
    if existing is None:
        raise NotFoundError("Blog not found")

    values = _update_values(existing, payload)
    links = _links_payload(payload.links) if payload.links is not None else None
    blocks = _blocks_payload(payload.blocks) if payload.blocks is not None else None
    title_changed = payload.title is not None and payload.title != existing["title"]

    async def write() -> dict[str, Any] | None:
        async with executor.store.transaction() as tx:
            row = await repository.update_post(tx, existing["id"], values)
            if payload.tags is not None:
                await repository.replace_tags(tx, existing["id"], payload.tags)
            if links is not None:
                await repository.replace_links(tx, existing["id"], links)
            if blocks is not None:
                await repository.replace_blocks(tx, existing["id"], blocks)
            return row

    for round_no in range(1, SLUG_ASSIGN_ROUNDS + 1):
        if payload.slug and payload.slug != existing["slug"]:
            values["slug"] = payload.slug
        elif title_changed and not payload.slug:
            values["slug"] = await _assign_slug(executor, payload.title or "", existing_slug=existing["slug"])
        try:
            row = await executor.run(write)
        except asyncpg.UniqueViolationError as exc:
            if not _is_slug_conflict(exc):
                raise
            if payload.slug or round_no == SLUG_ASSIGN_ROUNDS:
                raise ConflictError(f"Slug '{values.get('slug')}' is already taken") from exc
            logger.info("slug_taken_retry slug=%s round=%s", values.get("slug"), round_no)
            continue
        if row is None:
            raise NotFoundError("Blog not found")
        logger.info("post_updated id=%s slug=%s", row["id"], row["slug"])
        return await _detail_by_slug(executor, row["slug"])

    raise ConflictError("Could not assign a unique slug")


async def delete_post(executor: QueryExecutor, slug: str) -> None:
    row = await executor.call(repository.delete_by_slug, slug)
    if row is None:
        raise NotFoundError("Blog not found")
    logger.info("post_deleted id=%s slug=%s", row["id"], slug)
