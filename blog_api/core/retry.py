"""
Retry wrapper for store calls.

Managed Postgres (serverless poolers, idle reapers) severs connections
without warning. `QueryExecutor.run` re-invokes an operation a bounded number
of times when it fails with a transient connection error, sleeping with
capped exponential backoff plus jitter and expiring the pool in between.
Every other error (constraint violations, bad SQL, missing rows surfaced by
the caller) propagates from the first attempt, unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, TypeVar

import asyncpg

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3

# Lowercased substrings seen in driver/server messages for dropped links.
RETRYABLE_MESSAGES = (
    "can't reach database server",
    "timed out",
    "server closed the connection",
    "terminating connection",
    "connection closed",
    "connection terminated",
    "connection was closed",
    "connection is closed",
)

# 57P01 admin_shutdown, 57P02 crash_shutdown, 57P03 cannot_connect_now.
RETRYABLE_SQLSTATES = frozenset({"57P01", "57P02", "57P03"})

RETRYABLE_TYPES: tuple[type[BaseException], ...] = (
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


class Reconnectable(Protocol):
    async def reconnect(self) -> None: ...


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff schedule, in seconds.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = 0.5
    max_delay: float = 3.0
    jitter: float = 0.2


def is_retryable_error(exc: BaseException) -> bool:
    """
    True when `exc` looks like a transient, infrastructure-level failure.
    """
    if isinstance(exc, RETRYABLE_TYPES):
        return True

    sqlstate = str(getattr(exc, "sqlstate", "") or "")
    if sqlstate.startswith("08") or sqlstate in RETRYABLE_SQLSTATES:
        return True

    message = str(exc).lower()
    return any(fragment in message for fragment in RETRYABLE_MESSAGES)


def backoff_delay(attempt: int, policy: RetryPolicy, rand: Callable[[], float] = random.random) -> float:
    """
    Delay before retrying after 0-based `attempt` failed.

    min(base * 2^attempt, cap) + jitter, with jitter drawn from [0, policy.jitter).
    """
    delay = min(policy.base_delay * (2**attempt), policy.max_delay)
    return delay + rand() * policy.jitter


class QueryExecutor:
    """
    Runs store operations with transient-failure retries.

    The store handle is injected; it is only touched for `reconnect()` between
    attempts and is passed through to callables given to `call()`.
    """

    def __init__(
        self,
        store: Any,
        *,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.store = store
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rand = rand

    async def run(self, operation: Callable[[], Awaitable[T]], max_retries: int | None = None) -> T:
        """
        Await `operation()`; on a retryable error try again, up to `max_retries`
        invocations in total. The error of the last attempt is re-raised as-is.
        """
        attempts = self.policy.max_retries if max_retries is None else max_retries
        if attempts < 1:
            raise ValueError("max_retries must be at least 1.")

        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as exc:
                if not is_retryable_error(exc) or attempt >= attempts - 1:
                    raise

                delay = backoff_delay(attempt, self.policy, self._rand)
                logger.warning(
                    "db_retry attempt=%s max_attempts=%s delay_ms=%s error=%s",
                    attempt + 1,
                    attempts,
                    round(delay * 1000),
                    type(exc).__name__,
                )
                await self._sleep(delay)
                await self._reconnect_best_effort()
                attempt += 1

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Shorthand for `run(lambda: fn(store, *args, **kwargs))`.
        """
        return await self.run(lambda: fn(self.store, *args, **kwargs))

    async def _reconnect_best_effort(self) -> None:
        # Reconnect errors never propagate; the next attempt reports the real state.
        reconnect = getattr(self.store, "reconnect", None)
        if reconnect is None:
            return None
        try:
            await reconnect()
        except Exception:
            logger.debug("db_reconnect_failed", exc_info=True)


async def execute_with_retry(
    store: Any,
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> T:
    return await QueryExecutor(store).run(operation, max_retries=max_retries)
