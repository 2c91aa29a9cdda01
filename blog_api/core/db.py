"""
Async database access helpers (raw SQL) using asyncpg.

`Database` owns the connection pool. The app creates one instance during
lifespan startup (see `blog_api/main.py`) and hands it to the query executor;
nothing in the package reaches for a module-level pool.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

logger = logging.getLogger(__name__)


def sanitize_database_url(url: str) -> str:
    """
    Drop `sslmode` from the query string; asyncpg rejects libpq-only params.
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


class _Queries:
    """
    Row-returning helpers shared by the pool handle and transaction scopes.

    Subclasses provide `_target()`: something with asyncpg's
    fetchrow/fetch/fetchval/execute methods (a Pool or a Connection).
    """

    def _target(self) -> Any:
        raise NotImplementedError

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        """
        Run a query and return a single row as a dict (or None).
        """
        row = await self._target().fetchrow(sql, *args)
        return _record_to_dict(row) if row is not None else None

    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        """
        Run a query and return all rows as a list of dicts.
        """
        rows = await self._target().fetch(sql, *args)
        return [_record_to_dict(r) for r in rows]

    async def fetch_val(self, sql: str, *args: Any) -> Any:
        return await self._target().fetchval(sql, *args)

    async def execute(self, sql: str, *args: Any) -> str:
        """
        Run a statement (INSERT/UPDATE/DELETE/DDL). Returns the status tag,
        e.g. "DELETE 1".
        """
        return await self._target().execute(sql, *args)


class Transaction(_Queries):
    """
    Query helpers bound to one connection inside an open transaction.
    """

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    def _target(self) -> asyncpg.Connection:
        return self._conn


class Database(_Queries):
    """
    Store handle: owns the asyncpg pool and exposes query helpers plus
    connect/reconnect for the retry layer.
    """

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: float = 30,
    ) -> None:
        self.dsn = sanitize_database_url(dsn)
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        if self._pool is not None:
            return None
        self._pool = await asyncpg.create_pool(
            dsn=self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
        )
        logger.info("db_pool_opened min_size=%s max_size=%s", self.min_size, self.max_size)

    async def reconnect(self) -> None:
        """
        Make the next acquire hand out a fresh connection.

        With no pool yet this opens one; otherwise every pooled connection is
        expired so severed sockets are replaced lazily. Safe to call from
        several tasks at once.
        """
        if self._pool is None:
            await self.connect()
            return None
        await self._pool.expire_connections()

    async def close(self) -> None:
        if self._pool is None:
            return None
        await self._pool.close()
        self._pool = None
        logger.info("db_pool_closed")

    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("DB pool is not initialized. Call connect() on startup.")
        return self._pool

    def _target(self) -> asyncpg.Pool:
        return self.pool()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """
        Acquire one connection and run the block in a transaction.

        The transaction commits when the block exits cleanly and rolls back
        on any exception, so the whole block can be retried as a unit.
        """
        async with self.pool().acquire() as conn:  # type: asyncpg.Connection
            async with conn.transaction():
                yield Transaction(conn)
