# cinerate/schemas/vote.py
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from ._strict_base import StrictModel, StrictRequestModel


class VoteCreateRequest(StrictRequestModel):
    voter_id: str = Field(..., min_length=1, max_length=26)
    entity_id: str = Field(..., min_length=1, max_length=26)
    score: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field("", max_length=2000)

    @field_validator("comment")
    @classmethod
    def _clean_comment(cls, v: Optional[str]) -> str:
        return (v or "").strip()


class VoteUpdateRequest(StrictRequestModel):
    score: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _require_change(self) -> "VoteUpdateRequest":
        if self.score is None and self.comment is None:
            raise ValueError("Provide score and/or comment")
        return self


class VoteResponse(StrictModel):
    id: str
    voter_id: str
    entity_id: str
    score: int
    comment: str
    created_at: datetime
    updated_at: datetime


class VoteListResponse(StrictModel):
    votes: List[VoteResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


class MessageResponse(StrictModel):
    message: str
