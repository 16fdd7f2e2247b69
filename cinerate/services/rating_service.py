# cinerate/services/rating_service.py
"""
RatingService: vote lifecycle and per-entity rating views.

Implements:
- One vote per (voter, entity), enforced by a pre-check and by the store
- Cache-first entity statistics with targeted invalidation on every mutation
- Bayesian smoothing against the current global prior
- Fire-and-forget prior refresh after each committed mutation
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import (
    DuplicateVoteException,
    NotFoundException,
    RepositoryException,
    ServiceException,
    UniqueViolationException,
    ValidationException,
)
from ..models.vote import Vote
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.entity_repository import EntityRepository, VoterRepository
from ..repositories.protocols import VoteStore
from ..repositories.vote_repository import VoteRepository
from . import cache_keys
from .base import BaseService, CacheProtocol
from .pagination import validate_list_options
from .prior_refresher import PriorRefresher
from .ratings_config import DEFAULT_RATINGS_CONFIG, GlobalPrior, RatingsConfig
from .ratings_math import EnhancedRatingStats, EntityRatingStats, enhance_stats


def normalize_score_counts(raw: Dict[Any, Any]) -> Dict[int, int]:
    """JSON round-trips turn histogram keys into strings; bring them back to ints."""
    return {int(score): int(count) for score, count in sorted(raw.items(), key=lambda kv: int(kv[0]))}


class RatingService(BaseService):
    """Service layer for votes and entity ratings."""

    def __init__(
        self,
        db: Session,
        refresher: PriorRefresher,
        cache: Optional[CacheProtocol] = None,
        config: RatingsConfig = DEFAULT_RATINGS_CONFIG,
        vote_repository: Optional[VoteStore] = None,
        entity_repository: Optional[EntityRepository] = None,
        voter_repository: Optional[VoterRepository] = None,
    ):
        super().__init__(db, cache)
        self.refresher = refresher
        self.config = config
        self.vote_repository: VoteStore = vote_repository or VoteRepository(db)
        self.entity_repository = entity_repository or EntityRepository(db)
        self.voter_repository = voter_repository or VoterRepository(db)

    # ------------------------------------------------------------------
    # Vote lifecycle
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_vote")
    def create_vote(self, voter_id: str, entity_id: str, score: int, comment: Optional[str] = "") -> Vote:
        vote = Vote.build(voter_id=voter_id, entity_id=entity_id, score=score, comment=comment)

        if not self.voter_repository.exists(id=voter_id):
            raise NotFoundException("Voter not found", code="VOTER_NOT_FOUND", details={"voter_id": voter_id})
        if not self.entity_repository.exists(id=entity_id):
            raise NotFoundException(
                "Entity not found", code="ENTITY_NOT_FOUND", details={"entity_id": entity_id}
            )

        # Best-effort; the unique constraint is the real guard
        if self.vote_repository.get_by_voter_and_entity(voter_id, entity_id) is not None:
            raise DuplicateVoteException(voter_id, entity_id)

        try:
            with self.transaction():
                self.vote_repository.save(vote)
        except UniqueViolationException as e:
            self.logger.info(f"Concurrent duplicate vote rejected for {voter_id} on {entity_id}")
            raise DuplicateVoteException(voter_id, entity_id) from e
        except RepositoryException as e:
            raise ServiceException("Failed to save vote", code="VOTE_SAVE_FAILED") from e

        self.log_mutation("create_vote", vote)
        self._after_mutation(vote.voter_id, vote.entity_id)
        return vote

    @BaseService.measure_operation("get_vote")
    def get_vote(self, vote_id: str) -> Vote:
        vote = self.vote_repository.get_by_id(vote_id)
        if vote is None:
            raise NotFoundException("Vote not found", code="VOTE_NOT_FOUND", details={"vote_id": vote_id})
        return vote

    @BaseService.measure_operation("get_voter_vote")
    def get_voter_vote(self, voter_id: str, entity_id: str) -> Vote:
        vote = self.vote_repository.get_by_voter_and_entity(voter_id, entity_id)
        if vote is None:
            raise NotFoundException(
                "Voter has not rated this entity",
                code="VOTE_NOT_FOUND",
                details={"voter_id": voter_id, "entity_id": entity_id},
            )
        return vote

    @BaseService.measure_operation("update_vote")
    def update_vote(
        self, vote_id: str, score: Optional[int] = None, comment: Optional[str] = None
    ) -> Vote:
        if score is None and comment is None:
            raise ValidationException("Nothing to update", code="EMPTY_UPDATE")

        vote = self.get_vote(vote_id)
        if score is not None:
            vote.update_score(score)
        if comment is not None:
            vote.update_comment(comment)

        try:
            with self.transaction():
                self.vote_repository.update(vote)
        except RepositoryException as e:
            raise ServiceException("Failed to update vote", code="VOTE_UPDATE_FAILED") from e

        self.log_mutation("update_vote", vote)
        self._after_mutation(vote.voter_id, vote.entity_id)
        return vote

    @BaseService.measure_operation("delete_vote")
    def delete_vote(self, vote_id: str) -> None:
        vote = self.get_vote(vote_id)
        voter_id, entity_id = vote.voter_id, vote.entity_id

        try:
            with self.transaction():
                deleted = self.vote_repository.delete(vote_id)
        except RepositoryException as e:
            raise ServiceException("Failed to delete vote", code="VOTE_DELETE_FAILED") from e
        if not deleted:
            raise NotFoundException("Vote not found", code="VOTE_NOT_FOUND", details={"vote_id": vote_id})

        self.log_mutation("delete_vote", vote)
        self._after_mutation(voter_id, entity_id)

    def log_mutation(self, operation: str, vote: Vote) -> None:
        self.logger.info(
            f"{operation}: vote={vote.id} voter={vote.voter_id} entity={vote.entity_id} score={vote.score}"
        )

    def _after_mutation(self, voter_id: str, entity_id: str) -> None:
        """Runs only after the store write committed."""
        self.invalidate_cache(
            cache_keys.entity_stats_key(entity_id),
            cache_keys.voter_stats_key(voter_id),
        )
        self.invalidate_pattern(cache_keys.voter_profile_pattern(voter_id))
        self.refresher.schedule_refresh("mutation")

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    @BaseService.measure_operation("list_votes_by_voter")
    def list_votes_by_voter(
        self,
        voter_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: Optional[str] = None,
        order: Optional[str] = None,
    ) -> Tuple[List[Vote], int]:
        opts = validate_list_options(limit, offset, sort_by, order)
        votes = self.vote_repository.get_by_voter(
            voter_id, limit=opts.limit, offset=opts.offset, sort_by=opts.sort_by, order=opts.order
        )
        return votes, self.vote_repository.count_by_voter(voter_id)

    @BaseService.measure_operation("list_votes_by_entity")
    def list_votes_by_entity(
        self,
        entity_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: Optional[str] = None,
        order: Optional[str] = None,
    ) -> Tuple[List[Vote], int]:
        opts = validate_list_options(limit, offset, sort_by, order)
        votes = self.vote_repository.get_by_entity(
            entity_id, limit=opts.limit, offset=opts.offset, sort_by=opts.sort_by, order=opts.order
        )
        return votes, self.vote_repository.count_by_entity(entity_id)

    # ------------------------------------------------------------------
    # Rating views
    # ------------------------------------------------------------------

    @BaseService.measure_operation("get_entity_stats")
    def get_entity_stats(self, entity_id: str) -> EntityRatingStats:
        cache_key = cache_keys.entity_stats_key(entity_id)
        cached = self.cache_get(cache_key)
        if cached:
            prometheus_metrics.record_cache_lookup("entity_stats", hit=True)
            return {
                "entity_id": str(cached["entity_id"]),
                "average_score": float(cached["average_score"]),
                "total_votes": int(cached["total_votes"]),
                "score_counts": normalize_score_counts(cached.get("score_counts") or {}),
            }
        prometheus_metrics.record_cache_lookup("entity_stats", hit=False)

        if not self.entity_repository.exists(id=entity_id):
            raise NotFoundException(
                "Entity not found", code="ENTITY_NOT_FOUND", details={"entity_id": entity_id}
            )

        aggregate = self.vote_repository.entity_aggregate(entity_id)
        stats: EntityRatingStats = {
            "entity_id": entity_id,
            "average_score": aggregate["average_score"],
            "total_votes": aggregate["total_votes"],
            "score_counts": aggregate["score_counts"],
        }
        self.cache_set(cache_key, stats, ttl=cache_keys.ENTITY_STATS_TTL)
        return stats

    @BaseService.measure_operation("get_enhanced_stats")
    def get_enhanced_stats(self, entity_id: str) -> EnhancedRatingStats:
        stats = self.get_entity_stats(entity_id)
        return enhance_stats(stats, self.refresher.get(), self.config)

    def current_prior(self) -> GlobalPrior:
        return self.refresher.get()
