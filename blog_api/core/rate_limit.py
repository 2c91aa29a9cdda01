"""
In-process fixed-window rate limiting, keyed by scope + client IP.

Every limited response carries `RateLimit-Limit`, `RateLimit-Remaining` and
`RateLimit-Reset` (seconds until the window resets), 429s included.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response

from .config import get_settings
from .deps import client_ip
from .errors import RateLimitExceeded


@dataclass(frozen=True)
class Quota:
    limit: int
    remaining: int
    reset_after: int

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }


class RateLimiter:
    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_s: float = 60.0,
    ) -> None:
        self._hits: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_interval_s = sweep_interval_s
        self._next_sweep: float | None = None

    def __len__(self) -> int:
        return len(self._hits)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (_, reset) in self._hits.items() if reset < now]
        for key in expired:
            del self._hits[key]

    def check(self, key: str, limit: int, window_seconds: int, message: str) -> Quota:
        now = self._clock()
        with self._lock:
            if self._next_sweep is None or now >= self._next_sweep:
                self._evict_expired(now)
                self._next_sweep = now + self._sweep_interval_s
            count, reset = self._hits.get(key, (0, now + window_seconds))
            if now > reset:
                count = 0
                reset = now + window_seconds
            count += 1
            self._hits[key] = (count, reset)

        quota = Quota(limit=limit, remaining=max(limit - count, 0), reset_after=max(math.ceil(reset - now), 0))
        if count > limit:
            raise RateLimitExceeded(message, headers=quota.headers())
        return quota

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._next_sweep = None


limiter = RateLimiter()


def _limit(request: Request, response: Response, scope: str, limit: int, window_seconds: int, message: str) -> None:
    quota = limiter.check(f"{scope}:{client_ip(request)}", limit, window_seconds, message)
    response.headers.update(quota.headers())


def public_rate_limit(request: Request, response: Response) -> None:
    settings = get_settings()
    _limit(
        request,
        response,
        "public",
        settings.rate_limit_max_requests,
        settings.rate_limit_window_s,
        "Too many requests from this IP, please try again later.",
    )


def admin_rate_limit(request: Request, response: Response) -> None:
    settings = get_settings()
    _limit(
        request,
        response,
        "admin",
        settings.rate_limit_admin_max_requests,
        settings.rate_limit_window_s,
        "Too many requests, please try again later.",
    )


def comment_rate_limit(request: Request, response: Response) -> None:
    settings = get_settings()
    _limit(
        request,
        response,
        "comment",
        settings.comment_rate_limit,
        settings.comment_rate_window_s,
        "Too many comments. Please try again later.",
    )
