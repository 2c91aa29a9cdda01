"""
Comment API endpoints (nested under a post).
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from blog_api.core import rate_limit
from blog_api.core.deps import SlugPath, get_client_ip, get_executor
from blog_api.core.errors import ok
from blog_api.core.retry import QueryExecutor
from blog_api.core.security import require_admin_api_key
from blog_api.posts.service import pagination

from . import schemas, service

router = APIRouter(prefix="/api/v1/blogs/{slug}/comments")


@router.get("", dependencies=[Depends(rate_limit.public_rate_limit)])
async def list_comments(
    slug: SlugPath,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: schemas.CommentSort = Query("newest"),
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    comments, total = await service.list_comments(executor, slug, page=page, limit=limit, sort=sort)
    return ok({"comments": comments, "pagination": pagination(page, limit, total)})


@router.post("", status_code=201, dependencies=[Depends(rate_limit.comment_rate_limit)])
async def create_comment(
    payload: schemas.CommentCreate,
    slug: SlugPath,
    ip_address: str | None = Depends(get_client_ip),
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    comment = await service.create_comment(
        executor,
        slug,
        name=payload.name,
        comment=payload.comment,
        ip_address=ip_address,
    )
    return ok({"comment": comment}, message="Comment posted successfully")


@router.delete(
    "/{comment_id}",
    dependencies=[Depends(require_admin_api_key), Depends(rate_limit.admin_rate_limit)],
)
async def delete_comment(
    slug: SlugPath,
    comment_id: UUID,
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    await service.delete_comment(executor, slug, comment_id)
    return ok(message="Comment deleted successfully")


@router.put(
    "/{comment_id}/status",
    dependencies=[Depends(require_admin_api_key), Depends(rate_limit.admin_rate_limit)],
)
async def update_comment_status(
    payload: schemas.CommentStatusUpdate,
    slug: SlugPath,
    comment_id: UUID,
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    comment = await service.update_comment_status(executor, slug, comment_id, status=payload.status)
    return ok({"comment": comment}, message="Comment status updated successfully")
