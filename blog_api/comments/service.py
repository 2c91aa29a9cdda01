"""
Comment business logic.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from blog_api.core.errors import NotFoundError, ValidationFailed
from blog_api.core.retry import QueryExecutor
from blog_api.posts import repository as post_repository

from . import repository

logger = logging.getLogger(__name__)


def to_public(row: dict[str, Any]) -> dict[str, Any]:
    created_at = row.get("created_at")
    return {
        "id": str(row["id"]),
        "name": row["name"],
        "comment": row["comment"],
        "createdAt": created_at.isoformat() if created_at is not None else None,
    }


def to_admin(row: dict[str, Any]) -> dict[str, Any]:
    item = to_public(row)
    item["status"] = row["status"]
    return item


async def _require_post(executor: QueryExecutor, slug: str) -> dict[str, Any]:
    post = await executor.call(post_repository.get_by_slug, slug)
    if post is None:
        raise NotFoundError("Blog not found")
    return post


async def list_comments(
    executor: QueryExecutor,
    slug: str,
    *,
    page: int = 1,
    limit: int = 20,
    sort: str = "newest",
) -> tuple[list[dict[str, Any]], int]:
    post = await _require_post(executor, slug)
    rows = await executor.call(
        repository.list_approved,
        post["id"],
        limit=limit,
        offset=(page - 1) * limit,
        oldest_first=sort == "oldest",
    )
    total = await executor.call(repository.count_approved, post["id"])
    return [to_public(row) for row in rows], total


async def create_comment(
    executor: QueryExecutor,
    slug: str,
    *,
    name: str,
    comment: str,
    ip_address: str | None = None,
) -> dict[str, Any]:
    post = await _require_post(executor, slug)
    if not post["enable_comments"]:
        raise ValidationFailed("Comments are disabled for this blog")

    # Auto-approved; moderation happens after the fact.
    row = await executor.call(
        repository.insert_comment,
        post["id"],
        name=name,
        comment=comment,
        ip_address=ip_address,
    )
    logger.info("comment_created id=%s post_id=%s", row["id"], post["id"])
    return to_public(row)


async def delete_comment(executor: QueryExecutor, slug: str, comment_id: UUID) -> None:
    post = await _require_post(executor, slug)
    row = await executor.call(repository.delete_comment, comment_id, post_id=post["id"])
    if row is None:
        raise NotFoundError("Comment not found")


async def update_comment_status(
    executor: QueryExecutor,
    slug: str,
    comment_id: UUID,
    *,
    status: str,
) -> dict[str, Any]:
    post = await _require_post(executor, slug)
    row = await executor.call(repository.update_status, comment_id, post_id=post["id"], status=status)
    if row is None:
        raise NotFoundError("Comment not found")
    return to_admin(row)
