"""
Tag API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from blog_api.core import rate_limit
from blog_api.core.deps import SlugPath, get_executor
from blog_api.core.errors import ok
from blog_api.core.retry import QueryExecutor
from blog_api.posts.service import pagination

from . import service

router = APIRouter(prefix="/api/v1/tags", dependencies=[Depends(rate_limit.public_rate_limit)])


@router.get("")
async def list_tags(
    popular: bool = Query(False),
    limit: int | None = Query(None, ge=1, le=100),
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    tags = await service.list_tags(executor, popular=popular, limit=limit)
    return ok({"tags": tags})


@router.get("/{slug}")
async def get_tag(
    slug: SlugPath,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    tag, posts, total = await service.posts_for_tag(executor, slug, page=page, limit=limit)
    return ok({"tag": tag, "blogs": posts, "pagination": pagination(page, limit, total)})
