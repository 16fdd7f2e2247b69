# cinerate/routes/v1/voters.py
"""
Voters routes - API v1

Endpoints:
    POST /                                   → Register a voter
    GET /{voter_id}/votes                    → Paginated votes cast by the voter
    GET /{voter_id}/profile                  → Votes joined with entity data, plus stats
    GET /{voter_id}/entities/{entity_id}/vote → The voter's vote for one entity
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status
from sqlalchemy.orm import Session

from ...core.exceptions import DomainException
from ...database import get_db
from ...dependencies import get_profile_service, get_rating_service
from ...repositories.entity_repository import VoterRepository
from ...schemas.vote import VoteListResponse, VoteResponse
from ...schemas.voter import VoterCreateRequest, VoterProfileResponse, VoterResponse
from ...services.profile_service import ProfileService
from ...services.rating_service import RatingService
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["voters-v1"])


@router.post("", response_model=VoterResponse, status_code=status.HTTP_201_CREATED)
def create_voter(
    payload: VoterCreateRequest = Body(...),
    db: Session = Depends(get_db),
) -> VoterResponse:
    voter = VoterRepository(db).create_voter(display_name=payload.display_name)
    db.commit()
    return VoterResponse.model_validate(voter)


@router.get("/{voter_id}/votes", response_model=VoteListResponse)
def list_voter_votes(
    voter_id: str = Path(..., min_length=1, max_length=26),
    limit: int = Query(20),
    offset: int = Query(0),
    sort_by: Optional[str] = Query(None),
    order: Optional[str] = Query(None),
    service: RatingService = Depends(get_rating_service),
) -> VoteListResponse:
    try:
        votes, total = service.list_votes_by_voter(
            voter_id, limit=limit, offset=offset, sort_by=sort_by, order=order
        )
    except DomainException as e:
        handle_domain_exception(e)
    return VoteListResponse(
        votes=[VoteResponse.model_validate(v) for v in votes],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(votes) < total,
    )


@router.get("/{voter_id}/profile", response_model=VoterProfileResponse)
def get_voter_profile(
    voter_id: str = Path(..., min_length=1, max_length=26),
    limit: int = Query(20),
    offset: int = Query(0),
    sort_by: Optional[str] = Query(None),
    order: Optional[str] = Query(None),
    service: ProfileService = Depends(get_profile_service),
) -> VoterProfileResponse:
    try:
        profile = service.get_voter_profile(
            voter_id, limit=limit, offset=offset, sort_by=sort_by, order=order
        )
    except DomainException as e:
        handle_domain_exception(e)
    return VoterProfileResponse.model_validate(profile)


@router.get("/{voter_id}/entities/{entity_id}/vote", response_model=VoteResponse)
def get_voter_vote(
    voter_id: str = Path(..., min_length=1, max_length=26),
    entity_id: str = Path(..., min_length=1, max_length=26),
    service: RatingService = Depends(get_rating_service),
) -> VoteResponse:
    try:
        vote = service.get_voter_vote(voter_id, entity_id)
    except DomainException as e:
        handle_domain_exception(e)
    return VoteResponse.model_validate(vote)
