"""
Search API endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from blog_api.core import rate_limit
from blog_api.core.deps import get_client_ip, get_executor
from blog_api.core.errors import ValidationFailed, ok
from blog_api.core.retry import QueryExecutor
from blog_api.posts.router import split_csv
from blog_api.posts.service import pagination

from . import service

router = APIRouter(prefix="/api/v1/search", dependencies=[Depends(rate_limit.public_rate_limit)])


@router.get("")
async def search(
    q: str = Query(..., min_length=1, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    tags: str | None = Query(None),
    ip_address: str | None = Depends(get_client_ip),
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    query = q.strip()
    if not query:
        raise ValidationFailed("Search query is required", details={"fields": {"q": ["must not be blank"]}})

    results, total = await service.search(
        executor,
        query,
        page=page,
        limit=limit,
        tags=split_csv(tags),
        ip_address=ip_address,
    )
    return ok(
        {
            "results": results,
            "pagination": pagination(page, limit, total),
            "query": query,
            "totalResults": total,
        }
    )
