"""
Comment API schemas.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

CommentStatus = Literal["approved", "pending", "spam", "deleted"]
CommentSort = Literal["newest", "oldest"]


class CommentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    comment: str = Field(..., min_length=1, max_length=5000)

    @field_validator("name", "comment", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class CommentStatusUpdate(BaseModel):
    status: CommentStatus
