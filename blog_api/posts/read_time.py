from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

WORDS_PER_MINUTE = 200
WORDS_PER_CODE_LINE = 5

_TEXT_BLOCKS = {"heading", "paragraph", "quote"}


def _word_count(text: Any) -> int:
    if not isinstance(text, str) or not text:
        return 0
    return len(text.split())


def calculate_read_time(blocks: Iterable[Mapping[str, Any]]) -> int:
    """
    Estimated minutes to read a post body, never less than 1.

    Each block is {"type": ..., "content": {...}}. Code counts a fixed number
    of words per line since it reads slower than prose.
    """
    total = 0
    for block in blocks:
        block_type = block.get("type")
        content = block.get("content") or {}
        if not isinstance(content, Mapping):
            continue

        if block_type in _TEXT_BLOCKS:
            total += _word_count(content.get("text"))
        elif block_type == "callout":
            total += _word_count(content.get("title"))
            total += _word_count(content.get("content"))
        elif block_type == "list":
            items = content.get("items")
            if isinstance(items, list):
                total += sum(_word_count(item) for item in items)
        elif block_type == "code":
            code = content.get("code")
            if isinstance(code, str) and code:
                total += len(code.split("\n")) * WORDS_PER_CODE_LINE

    return max(1, math.ceil(total / WORDS_PER_MINUTE))
