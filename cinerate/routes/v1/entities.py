# cinerate/routes/v1/entities.py
"""
Entities routes - API v1

Endpoints:
    POST /                           → Register an entity
    GET /{entity_id}                 → Entity metadata
    GET /{entity_id}/votes           → Paginated votes for the entity
    GET /{entity_id}/stats           → Raw rating statistics (cached)
    GET /{entity_id}/stats/enhanced  → Bayesian-smoothed statistics
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from ...core.exceptions import DomainException
from ...database import get_db
from ...dependencies import get_rating_service
from ...repositories.entity_repository import EntityRepository
from ...schemas.entity import (
    EnhancedStatsResponse,
    EntityCreateRequest,
    EntityResponse,
    EntityStatsResponse,
)
from ...schemas.vote import VoteListResponse, VoteResponse
from ...services.rating_service import RatingService
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["entities-v1"])


@router.post("", response_model=EntityResponse, status_code=status.HTTP_201_CREATED)
def create_entity(
    payload: EntityCreateRequest = Body(...),
    db: Session = Depends(get_db),
) -> EntityResponse:
    entity = EntityRepository(db).create_entity(
        title=payload.title, category=payload.category, release_year=payload.release_year
    )
    db.commit()
    logger.info(f"Entity created: {entity.id} ({entity.title})")
    return EntityResponse.model_validate(entity)


@router.get("/{entity_id}", response_model=EntityResponse)
def get_entity(
    entity_id: str = Path(..., min_length=1, max_length=26),
    db: Session = Depends(get_db),
) -> EntityResponse:
    entity = EntityRepository(db).get_by_id(entity_id)
    if entity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "Entity not found", "code": "ENTITY_NOT_FOUND"},
        )
    return EntityResponse.model_validate(entity)


@router.get("/{entity_id}/votes", response_model=VoteListResponse)
def list_entity_votes(
    entity_id: str = Path(..., min_length=1, max_length=26),
    limit: int = Query(20),
    offset: int = Query(0),
    sort_by: Optional[str] = Query(None),
    order: Optional[str] = Query(None),
    service: RatingService = Depends(get_rating_service),
) -> VoteListResponse:
    try:
        votes, total = service.list_votes_by_entity(
            entity_id, limit=limit, offset=offset, sort_by=sort_by, order=order
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


@router.get("/{entity_id}/stats", response_model=EntityStatsResponse)
def get_entity_stats(
    entity_id: str = Path(..., min_length=1, max_length=26),
    service: RatingService = Depends(get_rating_service),
) -> EntityStatsResponse:
    try:
        stats = service.get_entity_stats(entity_id)
    except DomainException as e:
        handle_domain_exception(e)
    return EntityStatsResponse(**stats)


@router.get("/{entity_id}/stats/enhanced", response_model=EnhancedStatsResponse)
def get_enhanced_stats(
    entity_id: str = Path(..., min_length=1, max_length=26),
    service: RatingService = Depends(get_rating_service),
) -> EnhancedStatsResponse:
    """Stats plus the smoothed average. The percentile is a coarse bucket, not a measured rank."""
    try:
        stats = service.get_enhanced_stats(entity_id)
    except DomainException as e:
        handle_domain_exception(e)
    return EnhancedStatsResponse(**stats)
