"""FastAPI dependency providers for services and process-wide singletons."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .database import get_db
from .services.base import CacheProtocol
from .services.prior_refresher import PriorRefresher
from .services.profile_service import ProfileService
from .services.rating_service import RatingService


def get_prior_refresher(request: Request) -> PriorRefresher:
    return request.app.state.prior_refresher


def get_cache(request: Request) -> CacheProtocol:
    return request.app.state.cache


def get_rating_service(
    db: Session = Depends(get_db),
    refresher: PriorRefresher = Depends(get_prior_refresher),
    cache: CacheProtocol = Depends(get_cache),
) -> RatingService:
    return RatingService(db, refresher, cache=cache, config=refresher.config)


def get_profile_service(
    db: Session = Depends(get_db),
    cache: CacheProtocol = Depends(get_cache),
) -> ProfileService:
    return ProfileService(db, cache=cache)
