# cinerate/schemas/voter.py
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel
from .vote import VoteResponse


class VoterCreateRequest(StrictRequestModel):
    display_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("display_name")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("must not be blank")
        return v2


class VoterResponse(StrictModel):
    id: str
    display_name: str
    created_at: datetime


class ProfileEntity(StrictModel):
    id: str
    title: str
    category: str


class ProfileRowResponse(StrictModel):
    vote: VoteResponse
    entity: ProfileEntity
    entity_average: float
    entity_total_votes: int
    voter_vs_average: str = Field(
        ..., pattern="^(only_vote|much_above|above|same|below|much_below)$"
    )


class VoterStatsResponse(StrictModel):
    voter_id: str
    total_votes: int
    average_score: float
    score_distribution: Dict[int, int]
    category_breakdown: Dict[str, int]
    favorite_category: Optional[str] = None


class VoterProfileResponse(StrictModel):
    voter_id: str
    votes: List[ProfileRowResponse]
    total: int
    limit: int
    offset: int
    has_more: bool
    stats: VoterStatsResponse
