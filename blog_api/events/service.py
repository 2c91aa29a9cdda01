"""
Calendar event business logic.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import Any
from uuid import UUID

from blog_api.core.errors import NotFoundError, ValidationFailed
from blog_api.core.retry import QueryExecutor
from blog_api.posts import repository as post_repository

from . import repository, schemas

logger = logging.getLogger(__name__)


def month_bounds(today: date) -> tuple[date, date]:
    """
    First and last day of the month containing `today`.

    >>> month_bounds(date(2024, 2, 10))
    (datetime.date(2024, 2, 1), datetime.date(2024, 2, 29))
    """
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def check_time_range(start_time: str | None, end_time: str | None) -> None:
    # Zero-padded HH:MM strings order the same as the times they denote.
    if start_time and end_time and end_time <= start_time:
        raise ValidationFailed(
            "End time must be after start time",
            details={"fields": {"endTime": ["must be after startTime"]}},
        )


def to_public(row: dict[str, Any]) -> dict[str, Any]:
    post_id = row.get("post_id")
    event_date = row["event_date"]
    return {
        "id": str(row["id"]),
        "title": row["title"],
        "description": row.get("description"),
        "date": event_date.isoformat() if isinstance(event_date, date) else event_date,
        "startTime": row.get("start_time"),
        "endTime": row.get("end_time"),
        "color": row["color"],
        "blogId": str(post_id) if post_id is not None else None,
        "blog": {"slug": row.get("post_slug"), "title": row.get("post_title")} if post_id is not None else None,
    }


async def _require_post(executor: QueryExecutor, post_id: UUID | None) -> None:
    if post_id is None:
        return
    if await executor.call(post_repository.get_by_id, post_id) is None:
        raise NotFoundError("Blog not found")


async def _load(executor: QueryExecutor, event_id: Any) -> dict[str, Any]:
    row = await executor.call(repository.get_event, event_id)
    if row is None:
        raise NotFoundError("Event not found")
    return row


async def list_events(
    executor: QueryExecutor,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    blog_id: UUID | None = None,
    today: date | None = None,
) -> list[dict[str, Any]]:
    default_start, default_end = month_bounds(today or date.today())
    rows = await executor.call(
        repository.list_events,
        start=start_date or default_start,
        end=end_date or default_end,
        post_id=blog_id,
    )
    return [to_public(row) for row in rows]


async def create_event(executor: QueryExecutor, payload: schemas.EventCreate) -> dict[str, Any]:
    check_time_range(payload.start_time, payload.end_time)
    await _require_post(executor, payload.blog_id)

    row = await executor.call(
        repository.insert_event,
        {
            "title": payload.title,
            "description": payload.description or None,
            "event_date": payload.event_date,
            "start_time": payload.start_time,
            "end_time": payload.end_time,
            "color": payload.color,
            "post_id": payload.blog_id,
        },
    )
    logger.info("event_created id=%s", row["id"])
    return to_public(await _load(executor, row["id"]))


async def update_event(executor: QueryExecutor, event_id: UUID, payload: schemas.EventUpdate) -> dict[str, Any]:
    existing = await _load(executor, event_id)
    check_time_range(
        payload.start_time or existing.get("start_time"),
        payload.end_time or existing.get("end_time"),
    )
    await _require_post(executor, payload.blog_id)

    values: dict[str, Any] = {}
    for field, column in (
        ("title", "title"),
        ("description", "description"),
        ("event_date", "event_date"),
        ("start_time", "start_time"),
        ("end_time", "end_time"),
        ("color", "color"),
        ("blog_id", "post_id"),
    ):
        value = getattr(payload, field)
        if value is not None:
            values[column] = value

    row = await executor.call(repository.update_event, event_id, values)
    if row is None:
        raise NotFoundError("Event not found")
    logger.info("event_updated id=%s", event_id)
    return to_public(await _load(executor, event_id))


async def delete_event(executor: QueryExecutor, event_id: UUID) -> None:
    row = await executor.call(repository.delete_event, event_id)
    if row is None:
        raise NotFoundError("Event not found")
    logger.info("event_deleted id=%s", event_id)
