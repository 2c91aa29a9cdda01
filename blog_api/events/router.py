"""
Calendar event API endpoints.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from blog_api.core import rate_limit
from blog_api.core.deps import get_executor
from blog_api.core.errors import ok
from blog_api.core.retry import QueryExecutor
from blog_api.core.security import require_admin_api_key

from . import schemas, service

router = APIRouter(prefix="/api/v1/calendar/events")

_ADMIN = [Depends(require_admin_api_key), Depends(rate_limit.admin_rate_limit)]


@router.get("", dependencies=[Depends(rate_limit.public_rate_limit)])
async def list_events(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    blog_id: UUID | None = Query(None, alias="blogId"),
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    events = await service.list_events(executor, start_date=start_date, end_date=end_date, blog_id=blog_id)
    return ok({"events": events})


@router.post("", status_code=201, dependencies=_ADMIN)
async def create_event(
    payload: schemas.EventCreate,
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    event = await service.create_event(executor, payload)
    return ok({"event": event}, message="Event created successfully")


@router.put("/{event_id}", dependencies=_ADMIN)
async def update_event(
    payload: schemas.EventUpdate,
    event_id: UUID,
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    event = await service.update_event(executor, event_id, payload)
    return ok({"event": event}, message="Event updated successfully")


@router.delete("/{event_id}", dependencies=_ADMIN)
async def delete_event(
    event_id: UUID,
    executor: QueryExecutor = Depends(get_executor),
) -> dict:
    await service.delete_event(executor, event_id)
    return ok(message="Event deleted successfully")
