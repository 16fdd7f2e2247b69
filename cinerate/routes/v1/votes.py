# cinerate/routes/v1/votes.py
"""
Votes routes - API v1

Endpoints:
    POST /             → Cast a vote (one per voter and entity)
    GET /{vote_id}     → Fetch a vote
    PATCH /{vote_id}   → Change score and/or comment
    DELETE /{vote_id}  → Remove a vote
"""

import logging

from fastapi import APIRouter, Body, Depends, Path, status

from ...core.exceptions import DomainException
from ...dependencies import get_rating_service
from ...schemas.vote import MessageResponse, VoteCreateRequest, VoteResponse, VoteUpdateRequest
from ...services.rating_service import RatingService
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["votes-v1"])


@router.post("", response_model=VoteResponse, status_code=status.HTTP_201_CREATED)
def create_vote(
    payload: VoteCreateRequest = Body(...),
    service: RatingService = Depends(get_rating_service),
) -> VoteResponse:
    """Cast a vote. A second vote by the same voter for the same entity is a 409."""
    try:
        vote = service.create_vote(
            voter_id=payload.voter_id,
            entity_id=payload.entity_id,
            score=payload.score,
            comment=payload.comment,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return VoteResponse.model_validate(vote)


@router.get("/{vote_id}", response_model=VoteResponse)
def get_vote(
    vote_id: str = Path(..., min_length=1, max_length=26),
    service: RatingService = Depends(get_rating_service),
) -> VoteResponse:
    try:
        vote = service.get_vote(vote_id)
    except DomainException as e:
        handle_domain_exception(e)
    return VoteResponse.model_validate(vote)


@router.patch("/{vote_id}", response_model=VoteResponse)
def update_vote(
    vote_id: str = Path(..., min_length=1, max_length=26),
    payload: VoteUpdateRequest = Body(...),
    service: RatingService = Depends(get_rating_service),
) -> VoteResponse:
    try:
        vote = service.update_vote(vote_id, score=payload.score, comment=payload.comment)
    except DomainException as e:
        handle_domain_exception(e)
    return VoteResponse.model_validate(vote)


@router.delete("/{vote_id}", response_model=MessageResponse)
def delete_vote(
    vote_id: str = Path(..., min_length=1, max_length=26),
    service: RatingService = Depends(get_rating_service),
) -> MessageResponse:
    try:
        service.delete_vote(vote_id)
    except DomainException as e:
        handle_domain_exception(e)
    return MessageResponse(message="Vote deleted")
