"""
Post API schemas (request models).

JSON bodies use camelCase keys; Python attributes are snake_case.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

LayoutType = Literal["single-column", "two-column"]
PostStatus = Literal["published", "archived"]
BlockType = Literal["heading", "paragraph", "code", "image", "callout", "list", "quote", "divider"]
LinkType = Literal["internal", "external"]
SortOrder = Literal["newest", "oldest", "popular"]

SLUG_REGEX = r"^[a-z0-9-]+$"
URL_REGEX = r"^https?://\S+$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class LayoutIn(_CamelModel):
    type: LayoutType | None = None
    max_width: str | None = Field(default=None, max_length=50, alias="maxWidth")
    show_table_of_contents: bool | None = Field(default=None, alias="showTableOfContents")


class SettingsIn(_CamelModel):
    enable_voting: bool | None = Field(default=None, alias="enableVoting")
    enable_social_share: bool | None = Field(default=None, alias="enableSocialShare")
    enable_comments: bool | None = Field(default=None, alias="enableComments")


class LinkIn(BaseModel):
    label: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=2048)
    type: LinkType = "external"


class BlockIn(BaseModel):
    type: BlockType
    content: dict[str, Any] = Field(default_factory=dict)
    order: int | None = Field(default=None, ge=0)


class PostCreate(_CamelModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=2000)
    slug: str | None = Field(default=None, pattern=SLUG_REGEX, max_length=255)
    author: str | None = Field(default=None, max_length=255)
    cover_image: str | None = Field(default=None, pattern=URL_REGEX, max_length=2048, alias="coverImage")
    layout: LayoutIn | None = None
    settings: SettingsIn | None = None
    status: PostStatus = "published"
    tags: list[str] | None = None
    links: list[LinkIn] | None = None
    blocks: list[BlockIn] | None = None

    @field_validator("title", "description", "slug", "author", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _strip(value)


class PostUpdate(_CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=2000)
    slug: str | None = Field(default=None, pattern=SLUG_REGEX, max_length=255)
    author: str | None = Field(default=None, max_length=255)
    cover_image: str | None = Field(default=None, pattern=URL_REGEX, max_length=2048, alias="coverImage")
    layout: LayoutIn | None = None
    settings: SettingsIn | None = None
    status: PostStatus | None = None
    tags: list[str] | None = None
    links: list[LinkIn] | None = None
    blocks: list[BlockIn] | None = None

    @field_validator("title", "description", "slug", "author", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _strip(value)
