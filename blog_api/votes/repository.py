"""
Vote persistence (raw SQL).

A voter is identified by client IP and/or an `X-Session-Id` value; a row
matches when either identifier matches.
"""

from __future__ import annotations

from typing import Any

_VOTER_MATCH = "(ip_address = $2::text OR session_id = $3::text)"


async def vote_counts(store: Any, post_id: Any) -> dict[str, int]:
    row = await store.fetch_one(
        """
        SELECT
          count(*) FILTER (WHERE vote_type = 'upvote') AS upvotes,
          count(*) FILTER (WHERE vote_type = 'downvote') AS downvotes
        FROM votes
        WHERE post_id = $1
        """,
        post_id,
    )
    row = row or {}
    return {"upvotes": int(row.get("upvotes") or 0), "downvotes": int(row.get("downvotes") or 0)}


async def find_vote(
    store: Any,
    post_id: Any,
    *,
    ip_address: str | None,
    session_id: str | None,
) -> dict[str, Any] | None:
    if not ip_address and not session_id:
        return None
    return await store.fetch_one(
        f"""
        SELECT id, vote_type
        FROM votes
        WHERE post_id = $1
          AND {_VOTER_MATCH}
        ORDER BY updated_at DESC
        LIMIT 1
        """,
        post_id,
        ip_address,
        session_id,
    )


async def update_vote(store: Any, vote_id: Any, vote_type: str) -> None:
    await store.execute(
        "UPDATE votes SET vote_type = $2, updated_at = now() WHERE id = $1",
        vote_id,
        vote_type,
    )


async def insert_vote(
    store: Any,
    post_id: Any,
    *,
    vote_type: str,
    ip_address: str | None,
    session_id: str | None,
) -> None:
    await store.execute(
        """
        INSERT INTO votes (post_id, ip_address, session_id, vote_type)
        VALUES ($1, $2, $3, $4)
        """,
        post_id,
        ip_address,
        session_id,
        vote_type,
    )


async def delete_votes(
    store: Any,
    post_id: Any,
    *,
    ip_address: str | None,
    session_id: str | None,
) -> None:
    await store.execute(
        f"DELETE FROM votes WHERE post_id = $1 AND {_VOTER_MATCH}",
        post_id,
        ip_address,
        session_id,
    )
