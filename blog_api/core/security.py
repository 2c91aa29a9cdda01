"""
Admin authentication: a shared API key sent as `X-API-Key`.
"""

from __future__ import annotations

import hmac

from fastapi import Header

from .config import get_settings
from .errors import UnauthorizedError


def require_admin_api_key(x_api_key: str | None = Header(default=None)) -> None:
    provided = (x_api_key or "").strip()
    if not provided:
        raise UnauthorizedError("API key is required for this operation")

    expected = get_settings().admin_api_key
    # An unset key locks admin routes instead of opening them.
    if not expected or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError("Invalid API key")
