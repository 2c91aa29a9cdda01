"""
Request-scoped accessors shared by the feature routers.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Header, Path, Request

from .config import get_settings
from .retry import QueryExecutor

SlugPath = Annotated[str, Path(min_length=1, max_length=255, pattern=r"^[a-z0-9-]+$")]


def get_executor(request: Request) -> QueryExecutor:
    executor = getattr(request.app.state, "executor", None)
    if executor is None:
        raise RuntimeError("Query executor is not configured. Is the app lifespan running?")
    return executor


def client_ip(request: Request) -> str:
    # Forwarding headers are client-controlled unless a proxy sets them.
    if get_settings().trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if forwarded:
            return forwarded
        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_client_ip(request: Request) -> str | None:
    ip = client_ip(request)
    return None if ip == "unknown" else ip


def get_session_id(x_session_id: str | None = Header(default=None)) -> str | None:
    value = (x_session_id or "").strip()
    return value or None
