"""
Comment persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any

COMMENT_COLUMNS = "id, post_id, name, comment, ip_address, status, created_at, updated_at"


async def list_approved(
    store: Any,
    post_id: Any,
    *,
    limit: int,
    offset: int,
    oldest_first: bool = False,
) -> list[dict[str, Any]]:
    direction = "ASC" if oldest_first else "DESC"
    return await store.fetch_all(
        f"""
        SELECT {COMMENT_COLUMNS}
        FROM comments
        WHERE post_id = $1
          AND status = 'approved'
        ORDER BY created_at {direction}, id {direction}
        LIMIT $2
        OFFSET $3
        """,
        post_id,
        limit,
        offset,
    )


async def count_approved(store: Any, post_id: Any) -> int:
    value = await store.fetch_val(
        "SELECT count(*) FROM comments WHERE post_id = $1 AND status = 'approved'",
        post_id,
    )
    return int(value or 0)


async def insert_comment(
    store: Any,
    post_id: Any,
    *,
    name: str,
    comment: str,
    ip_address: str | None,
    status: str = "approved",
) -> dict[str, Any]:
    row = await store.fetch_one(
        f"""
        INSERT INTO comments (post_id, name, comment, ip_address, status)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING {COMMENT_COLUMNS}
        """,
        post_id,
        name,
        comment,
        ip_address,
        status,
    )
    if row is None:
        raise RuntimeError("Failed to insert comment.")
    return row


async def delete_comment(store: Any, comment_id: Any, *, post_id: Any) -> dict[str, Any] | None:
    return await store.fetch_one(
        "DELETE FROM comments WHERE id = $1 AND post_id = $2 RETURNING id",
        comment_id,
        post_id,
    )


async def update_status(store: Any, comment_id: Any, *, post_id: Any, status: str) -> dict[str, Any] | None:
    return await store.fetch_one(
        f"""
        UPDATE comments
        SET status = $3,
            updated_at = now()
        WHERE id = $1
          AND post_id = $2
        RETURNING {COMMENT_COLUMNS}
        """,
        comment_id,
        post_id,
        status,
    )
