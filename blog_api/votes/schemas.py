"""
Vote API schemas.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

VoteType = Literal["upvote", "downvote"]


class VoteIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vote_type: VoteType = Field(..., alias="voteType")
