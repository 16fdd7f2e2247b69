# cinerate/schemas/entity.py
from datetime import datetime
from typing import Dict, Optional

from pydantic import Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel


class EntityCreateRequest(StrictRequestModel):
    title: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    release_year: Optional[int] = Field(None, ge=1870, le=2200)

    @field_validator("title", "category")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("must not be blank")
        return v2


class EntityResponse(StrictModel):
    id: str
    title: str
    category: str
    release_year: Optional[int] = None
    created_at: datetime


class EntityStatsResponse(StrictModel):
    entity_id: str
    average_score: float
    total_votes: int
    score_counts: Dict[int, int]


class EnhancedStatsResponse(EntityStatsResponse):
    bayesian_average: float
    confidence: float = Field(..., ge=0.0, le=1.0)
    percentile: float
    explanation: str


class PriorResponse(StrictModel):
    global_mean: float
    min_votes_threshold: int
    confidence_constant: float
