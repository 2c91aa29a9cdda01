"""
Vote API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from blog_api.core import rate_limit
from blog_api.core.deps import SlugPath, get_client_ip, get_executor, get_session_id
from blog_api.core.errors import ok
from blog_api.core.retry import QueryExecutor

from . import schemas, service

router = APIRouter(prefix="/api/v1/blogs", dependencies=[Depends(rate_limit.public_rate_limit)])


@router.post("/{slug}/vote")
async def vote(
    payload: schemas.VoteIn,
    slug: SlugPath,
    ip_address: str | None = Depends(get_client_ip),
    session_id: str | None = Depends(get_session_id),
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    voting = await service.cast_vote(
        executor,
        slug,
        payload.vote_type,
        ip_address=ip_address,
        session_id=session_id,
    )
    return ok({"voting": voting}, message="Vote recorded successfully")


@router.delete("/{slug}/vote")
async def remove_vote(
    slug: SlugPath,
    ip_address: str | None = Depends(get_client_ip),
    session_id: str | None = Depends(get_session_id),
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    voting = await service.remove_vote(executor, slug, ip_address=ip_address, session_id=session_id)
    return ok({"voting": voting}, message="Vote removed successfully")
