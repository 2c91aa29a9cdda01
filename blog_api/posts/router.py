"""
Post API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from blog_api.core import rate_limit
from blog_api.core.deps import SlugPath, get_client_ip, get_executor, get_session_id
from blog_api.core.errors import NotFoundError, ok
from blog_api.core.retry import QueryExecutor
from blog_api.core.security import require_admin_api_key

from . import schemas, service

router = APIRouter(prefix="/api/v1/blogs")


def split_csv(value: str | None) -> list[str] | None:
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


@router.get("", dependencies=[Depends(rate_limit.public_rate_limit)])
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    sort: schemas.SortOrder = Query("newest"),
    tags: str | None = Query(default=None, max_length=1000),
    author: str | None = Query(default=None, max_length=255),
    search: str | None = Query(default=None, min_length=1, max_length=200),
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    posts, total = await service.list_posts(
        executor,
        page=page,
        limit=limit,
        sort=sort,
        tags=split_csv(tags),
        author=(author or "").strip() or None,
        search=(search or "").strip() or None,
    )
    return ok({"blogs": posts, "pagination": service.pagination(page, limit, total)})


@router.get("/{slug}", dependencies=[Depends(rate_limit.public_rate_limit)])
async def get_post(
    slug: SlugPath,
    ip_address: str | None = Depends(get_client_ip),
    session_id: str | None = Depends(get_session_id),
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    post = await service.get_post(executor, slug, ip_address=ip_address, session_id=session_id)
    if post is None:
        raise NotFoundError("Blog not found")
    return ok({"blog": post})


@router.post(
    "",
    status_code=201,
    dependencies=[Depends(require_admin_api_key), Depends(rate_limit.admin_rate_limit)],
)
async def create_post(
    payload: schemas.PostCreate,
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    post = await service.create_post(executor, payload)
    return ok({"blog": post}, message="Blog created successfully")


@router.put(
    "/{slug}",
    dependencies=[Depends(require_admin_api_key), Depends(rate_limit.admin_rate_limit)],
)
async def update_post(
    payload: schemas.PostUpdate,
    slug: SlugPath,
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    post = await service.update_post(executor, slug, payload)
    return ok({"blog": post}, message="Blog updated successfully")


@router.delete(
    "/{slug}",
    dependencies=[Depends(require_admin_api_key), Depends(rate_limit.admin_rate_limit)],
)
async def delete_post(
    slug: SlugPath,
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    await service.delete_post(executor, slug)
    return ok(message="Blog deleted successfully")
