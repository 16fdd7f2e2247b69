from .entity_repository import EntityRepository, VoterRepository
from .vote_repository import VoteRepository

__all__ = ["EntityRepository", "VoteRepository", "VoterRepository"]
