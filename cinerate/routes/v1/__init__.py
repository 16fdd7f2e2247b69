from fastapi import APIRouter

from . import entities, ratings, voters, votes

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(votes.router, prefix="/votes")
api_router.include_router(entities.router, prefix="/entities")
api_router.include_router(voters.router, prefix="/voters")
api_router.include_router(ratings.router, prefix="/ratings")

__all__ = ["api_router"]
