"""
Calendar event API schemas.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

EventColor = Literal["blue", "green", "purple", "orange"]

TIME_REGEX = r"^([01]\d|2[0-3]):[0-5]\d$"


class _EventBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @field_validator("title", "description", mode="before", check_fields=False)
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class EventCreate(_EventBase):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    event_date: dt.date = Field(..., alias="date")
    start_time: str | None = Field(None, alias="startTime", pattern=TIME_REGEX)
    end_time: str | None = Field(None, alias="endTime", pattern=TIME_REGEX)
    color: EventColor = "blue"
    blog_id: UUID | None = Field(None, alias="blogId")


class EventUpdate(_EventBase):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    event_date: dt.date | None = Field(None, alias="date")
    start_time: str | None = Field(None, alias="startTime", pattern=TIME_REGEX)
    end_time: str | None = Field(None, alias="endTime", pattern=TIME_REGEX)
    color: EventColor | None = None
    blog_id: UUID | None = Field(None, alias="blogId")
