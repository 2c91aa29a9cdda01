"""
Voting business logic.

A vote is keyed by voter identity (client IP and/or session id). Casting a
vote when one already exists for that identity flips it in place.
"""

from __future__ import annotations

import logging
from typing import Any

from blog_api.core.errors import NotFoundError, ValidationFailed
from blog_api.core.retry import QueryExecutor
from blog_api.posts import repository as post_repository

from . import repository

logger = logging.getLogger(__name__)


def _require_identity(ip_address: str | None, session_id: str | None) -> None:
    if not ip_address and not session_id:
        raise ValidationFailed("IP address or session ID is required")


async def _require_post(executor: QueryExecutor, slug: str) -> dict[str, Any]:
    post = await executor.call(post_repository.get_by_slug, slug)
    if post is None:
        raise NotFoundError("Blog not found")
    return post


async def voting_stats(
    executor: QueryExecutor,
    post: dict[str, Any],
    *,
    ip_address: str | None,
    session_id: str | None,
) -> dict[str, Any]:
    counts = await executor.call(repository.vote_counts, post["id"])
    existing = await executor.call(
        repository.find_vote,
        post["id"],
        ip_address=ip_address,
        session_id=session_id,
    )
    return {
        "enabled": bool(post["enable_voting"]),
        "upvotes": counts["upvotes"],
        "downvotes": counts["downvotes"],
        "userVote": existing["vote_type"] if existing else None,
    }


async def cast_vote(
    executor: QueryExecutor,
    slug: str,
    vote_type: str,
    *,
    ip_address: str | None = None,
    session_id: str | None = None,
) -> dict[str, Any]:
    post = await _require_post(executor, slug)
    if not post["enable_voting"]:
        raise ValidationFailed("Voting is disabled for this blog")
    _require_identity(ip_address, session_id)

    async def write() -> None:
        async with executor.store.transaction() as tx:
            existing = await repository.find_vote(tx, post["id"], ip_address=ip_address, session_id=session_id)
            if existing:
                await repository.update_vote(tx, existing["id"], vote_type)
            else:
                await repository.insert_vote(
                    tx,
                    post["id"],
                    vote_type=vote_type,
                    ip_address=ip_address,
                    session_id=session_id,
                )

    await executor.run(write)
    logger.info("vote_cast post_id=%s vote_type=%s", post["id"], vote_type)
    return await voting_stats(executor, post, ip_address=ip_address, session_id=session_id)


async def remove_vote(
    executor: QueryExecutor,
    slug: str,
    *,
    ip_address: str | None = None,
    session_id: str | None = None,
) -> dict[str, Any]:
    post = await _require_post(executor, slug)
    _require_identity(ip_address, session_id)

    await executor.call(repository.delete_votes, post["id"], ip_address=ip_address, session_id=session_id)
    stats = await voting_stats(executor, post, ip_address=ip_address, session_id=session_id)
    stats["userVote"] = None
    return stats
