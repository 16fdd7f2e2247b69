# cinerate/routes/v1/ratings.py
"""
Ratings routes - API v1

Endpoints:
    GET /prior → Current global prior snapshot used for smoothing
"""

from fastapi import APIRouter, Depends

from ...dependencies import get_prior_refresher
from ...schemas.entity import PriorResponse
from ...services.prior_refresher import PriorRefresher

router = APIRouter(tags=["ratings-v1"])


@router.get("/prior", response_model=PriorResponse)
def get_prior(refresher: PriorRefresher = Depends(get_prior_refresher)) -> PriorResponse:
    prior = refresher.get()
    return PriorResponse(
        global_mean=prior.global_mean,
        min_votes_threshold=prior.min_votes_threshold,
        confidence_constant=prior.confidence_constant,
    )
