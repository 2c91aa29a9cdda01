"""
Search over published posts.

Matching reuses the post listing's substring filter; this module adds a
relevance score per result and records the query in `search_history`.
"""

from __future__ import annotations

import logging
from typing import Any

from blog_api.core.retry import QueryExecutor
from blog_api.posts import service as post_service

from . import repository

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 10
DESCRIPTION_WEIGHT = 5
TAG_WEIGHT = 3


def relevance_score(post: dict[str, Any], query: str) -> float:
    """
    Weighted match score normalised to [0, 1].

    >>> relevance_score({"meta": {"title": "Async Python", "description": None}, "tags": []}, "python")
    1.0
    >>> relevance_score({"meta": {"title": "Intro", "description": "about python"}, "tags": []}, "python")
    0.5
    """
    needle = query.lower()
    meta = post.get("meta") or {}
    score = 0
    if needle in (meta.get("title") or "").lower():
        score += TITLE_WEIGHT
    if needle in (meta.get("description") or "").lower():
        score += DESCRIPTION_WEIGHT
    if any(needle in tag.lower() for tag in post.get("tags") or []):
        score += TAG_WEIGHT
    return min(score / 10, 1.0)


async def _record(executor: QueryExecutor, *, query: str, ip_address: str | None, total: int) -> None:
    try:
        await executor.call(repository.record_search, query=query, ip_address=ip_address, results_count=total)
    except Exception as exc:
        logger.warning("search_history_failed query=%r error=%s", query, exc)


async def search(
    executor: QueryExecutor,
    query: str,
    *,
    page: int = 1,
    limit: int = 10,
    tags: list[str] | None = None,
    ip_address: str | None = None,
) -> tuple[list[dict[str, Any]], int]:
    posts, total = await post_service.list_posts(executor, page=page, limit=limit, tags=tags, search=query)

    results = [{**post, "relevanceScore": relevance_score(post, query)} for post in posts]
    # sorted() is stable; equal scores keep the listing order.
    results = sorted(results, key=lambda item: item["relevanceScore"], reverse=True)

    if ip_address:
        await _record(executor, query=query, ip_address=ip_address, total=total)
    return results, total
