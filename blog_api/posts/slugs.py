"""
Slug derivation and uniqueness resolution for posts.

`SlugAssigner.assign` turns a title into a slug that no other post holds:
the bare slug when free, otherwise the first free `<slug>-<n>` for n = 1, 2, ...
Lookups go through the query executor, so a dropped connection mid-probe is
retried like any other read.

This is optimistic: two requests creating the same title can both see
`hello-world` as free. The `posts.slug` unique index is the final authority;
callers catch the resulting write conflict and assign again.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Awaitable, Callable

from blog_api.core.retry import QueryExecutor

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
DEFAULT_MAX_SUFFIX = 5000

_PUNCTUATION = re.compile(r"[^a-z0-9\s\-_/\\|]+")
_SEPARATORS = re.compile(r"[\s\-_/\\|]+")

Probe = Callable[[str], Awaitable[Any]]


class SlugError(ValueError):
    """Raised when a title cannot produce a slug."""


class SlugExhaustedError(SlugError):
    """Raised when every suffix up to the cap is taken."""


def slugify(text: str) -> str:
    """
    Lowercase ASCII slug: diacritics stripped, punctuation dropped,
    whitespace and separators collapsed to single hyphens.

        >>> slugify("Hello World!")
        'hello-world'
        >>> slugify("Crème brûlée & co.")
        'creme-brulee-and-co'
    """
    value = unicodedata.normalize("NFKD", text or "")
    value = value.replace("&", " and ")
    value = value.encode("ascii", "ignore").decode("ascii").lower()
    value = _PUNCTUATION.sub("", value)
    value = _SEPARATORS.sub("-", value)
    return value.strip("-")


def is_valid_slug(value: str | None) -> bool:
    return bool(value) and bool(SLUG_PATTERN.fullmatch(value or ""))


class SlugAssigner:
    """
    Resolves a unique slug against the store.

    `probe(candidate)` returns the row holding `candidate` or None.
    """

    def __init__(
        self,
        probe: Probe,
        *,
        executor: QueryExecutor,
        max_suffix: int = DEFAULT_MAX_SUFFIX,
    ) -> None:
        self._probe = probe
        self._executor = executor
        self._max_suffix = max_suffix

    async def assign(self, title: str, existing_slug: str | None = None) -> str:
        base = slugify(title)
        if not base:
            raise SlugError("Title must contain at least one letter or digit.")

        # No-op update: keep the slug without touching the store.
        if existing_slug and existing_slug == base:
            return base

        if await self._is_free(base, existing_slug):
            return base

        for counter in range(1, self._max_suffix + 1):
            candidate = f"{base}-{counter}"
            if await self._is_free(candidate, existing_slug):
                return candidate

        raise SlugExhaustedError(f"No free slug for '{base}' after {self._max_suffix} suffixes.")

    async def _is_free(self, candidate: str, existing_slug: str | None) -> bool:
        # The post being updated may keep its own current slug.
        if existing_slug and candidate == existing_slug:
            return True
        row = await self._executor.run(lambda: self._probe(candidate))
        return row is None
