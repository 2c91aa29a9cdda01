"""
Search history persistence.
"""

from __future__ import annotations

from typing import Any


async def record_search(store: Any, *, query: str, ip_address: str | None, results_count: int) -> None:
    await store.execute(
        """
        INSERT INTO search_history (ip_address, query, results_count)
        VALUES ($1, $2, $3)
        """,
        ip_address,
        query,
        results_count,
    )
