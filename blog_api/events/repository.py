"""
Calendar event persistence (raw SQL).
"""

from __future__ import annotations

from datetime import date
from typing import Any

_EVENT_SELECT = """
    SELECT e.id, e.title, e.description, e.event_date, e.start_time, e.end_time,
           e.color, e.post_id, e.created_at, e.updated_at,
           p.slug AS post_slug, p.title AS post_title
    FROM calendar_events e
    LEFT JOIN posts p ON p.id = e.post_id
"""

_UPDATABLE_COLUMNS = ("title", "description", "event_date", "start_time", "end_time", "color", "post_id")


async def list_events(
    store: Any,
    *,
    start: date,
    end: date,
    post_id: Any = None,
) -> list[dict[str, Any]]:
    args: list[Any] = [start, end]
    post_clause = ""
    if post_id is not None:
        args.append(post_id)
        post_clause = "AND e.post_id = $3"
    return await store.fetch_all(
        f"""
        {_EVENT_SELECT}
        WHERE e.event_date BETWEEN $1 AND $2
          {post_clause}
        ORDER BY e.event_date ASC, e.start_time ASC NULLS LAST
        """,
        *args,
    )


async def get_event(store: Any, event_id: Any) -> dict[str, Any] | None:
    return await store.fetch_one(f"{_EVENT_SELECT} WHERE e.id = $1", event_id)


async def insert_event(store: Any, values: dict[str, Any]) -> dict[str, Any]:
    row = await store.fetch_one(
        """
        INSERT INTO calendar_events (title, description, event_date, start_time, end_time, color, post_id)
        VALUES ($1, $2, $3, $4, $5, $6, $7)
        RETURNING id
        """,
        values["title"],
        values.get("description"),
        values["event_date"],
        values.get("start_time"),
        values.get("end_time"),
        values.get("color") or "blue",
        values.get("post_id"),
    )
    if row is None:
        raise RuntimeError("Failed to insert calendar event.")
    return row


async def update_event(store: Any, event_id: Any, values: dict[str, Any]) -> dict[str, Any] | None:
    columns = [c for c in _UPDATABLE_COLUMNS if c in values]
    args: list[Any] = [event_id]
    assignments = []
    for column in columns:
        args.append(values[column])
        assignments.append(f"{column} = ${len(args)}")
    assignments.append("updated_at = now()")
    return await store.fetch_one(
        f"""
        UPDATE calendar_events
        SET {", ".join(assignments)}
        WHERE id = $1
        RETURNING id
        """,
        *args,
    )


async def delete_event(store: Any, event_id: Any) -> dict[str, Any] | None:
    return await store.fetch_one("DELETE FROM calendar_events WHERE id = $1 RETURNING id", event_id)
