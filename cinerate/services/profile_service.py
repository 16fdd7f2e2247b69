# cinerate/services/profile_service.py
"""
ProfileService: per-voter summaries joined with entity metadata.

Both views are cache-aside. The paginated detail view is keyed by every
paging parameter; the stats view is keyed by voter only.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, ServiceException
from ..models.entity import Entity
from ..models.vote import Vote
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.entity_repository import EntityRepository, VoterRepository
from ..repositories.protocols import EntityMetadataProvider, VoteStore
from ..repositories.vote_repository import EntityAverage, VoteRepository
from . import cache_keys
from .base import BaseService, CacheProtocol
from .pagination import validate_list_options
from .rating_service import normalize_score_counts

MUCH_DIFFERENT = 0.5
SLIGHTLY_DIFFERENT = 0.1


class VoterProfileStats(TypedDict):
    voter_id: str
    total_votes: int
    average_score: float
    score_distribution: Dict[int, int]
    category_breakdown: Dict[str, int]
    favorite_category: Optional[str]


class ProfileRow(TypedDict):
    vote: Dict[str, Any]
    entity: Dict[str, Any]
    entity_average: float
    entity_total_votes: int
    voter_vs_average: str


class VoterProfile(TypedDict):
    voter_id: str
    votes: List[ProfileRow]
    total: int
    limit: int
    offset: int
    has_more: bool
    stats: VoterProfileStats


def compare_to_average(score: int, entity_average: float, entity_total_votes: int) -> str:
    """Label how a voter's score sits against everyone else's average for the entity."""
    if entity_total_votes <= 1:
        return "only_vote"
    diff = float(score) - float(entity_average)
    if diff > MUCH_DIFFERENT:
        return "much_above"
    if diff > SLIGHTLY_DIFFERENT:
        return "above"
    if diff < -MUCH_DIFFERENT:
        return "much_below"
    if diff < -SLIGHTLY_DIFFERENT:
        return "below"
    return "same"


def serialize_vote(vote: Vote) -> Dict[str, Any]:
    return {
        "id": vote.id,
        "voter_id": vote.voter_id,
        "entity_id": vote.entity_id,
        "score": vote.score,
        "comment": vote.comment,
        "created_at": vote.created_at.isoformat() if vote.created_at else None,
        "updated_at": vote.updated_at.isoformat() if vote.updated_at else None,
    }


class ProfileService(BaseService):
    """Service layer for voter profiles."""

    def __init__(
        self,
        db: Session,
        cache: Optional[CacheProtocol] = None,
        vote_repository: Optional[VoteStore] = None,
        entity_repository: Optional[EntityMetadataProvider] = None,
        voter_repository: Optional[VoterRepository] = None,
    ):
        super().__init__(db, cache)
        self.vote_repository: VoteStore = vote_repository or VoteRepository(db)
        self.entity_repository: EntityMetadataProvider = entity_repository or EntityRepository(db)
        self.voter_repository = voter_repository or VoterRepository(db)

    def _ensure_voter(self, voter_id: str) -> None:
        if not self.voter_repository.exists(id=voter_id):
            raise NotFoundException("Voter not found", code="VOTER_NOT_FOUND", details={"voter_id": voter_id})

    def _load_entities(self, votes: List[Vote]) -> Dict[str, Entity]:
        """Entity metadata for every vote; a vote pointing at a missing entity fails the request."""
        entity_ids = [v.entity_id for v in votes]
        entities = {e.id: e for e in self.entity_repository.get_many(entity_ids)}
        for vote in votes:
            if vote.entity_id not in entities:
                self.logger.error(
                    f"Vote {vote.id} of voter {vote.voter_id} references missing entity {vote.entity_id}"
                )
                raise ServiceException(
                    "Vote references an entity that no longer exists",
                    code="DANGLING_ENTITY_REFERENCE",
                    details={"vote_id": vote.id, "entity_id": vote.entity_id},
                )
        return entities

    @BaseService.measure_operation("get_voter_profile")
    def get_voter_profile(
        self,
        voter_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: Optional[str] = None,
        order: Optional[str] = None,
    ) -> VoterProfile:
        opts = validate_list_options(limit, offset, sort_by, order)
        self._ensure_voter(voter_id)

        page_key = cache_keys.voter_profile_key(voter_id, opts.limit, opts.offset, opts.sort_by, opts.order)
        page = self.cache_get(page_key)
        prometheus_metrics.record_cache_lookup("voter_profile", hit=bool(page))
        if not page:
            page = self._build_profile_page(voter_id, opts.limit, opts.offset, opts.sort_by, opts.order)
            self.cache_set(page_key, page, ttl=cache_keys.VOTER_PROFILE_TTL)

        total = int(page["total"])
        return {
            "voter_id": voter_id,
            "votes": list(page["rows"]),
            "total": total,
            "limit": opts.limit,
            "offset": opts.offset,
            "has_more": opts.offset + len(page["rows"]) < total,
            "stats": self.get_voter_stats(voter_id),
        }

    def _build_profile_page(
        self, voter_id: str, limit: int, offset: int, sort_by: str, order: str
    ) -> Dict[str, Any]:
        votes = self.vote_repository.get_by_voter(
            voter_id, limit=limit, offset=offset, sort_by=sort_by, order=order
        )
        total = self.vote_repository.count_by_voter(voter_id)
        entities = self._load_entities(votes)
        averages = self.vote_repository.entity_averages([v.entity_id for v in votes])

        rows: List[ProfileRow] = []
        for vote in votes:
            entity = entities[vote.entity_id]
            aggregate: EntityAverage = averages.get(vote.entity_id, {"total_votes": 0, "average_score": 0.0})
            rows.append(
                {
                    "vote": serialize_vote(vote),
                    "entity": {"id": entity.id, "title": entity.title, "category": entity.category},
                    "entity_average": aggregate["average_score"],
                    "entity_total_votes": aggregate["total_votes"],
                    "voter_vs_average": compare_to_average(
                        vote.score, aggregate["average_score"], aggregate["total_votes"]
                    ),
                }
            )
        return {"rows": rows, "total": total}

    @BaseService.measure_operation("get_voter_stats")
    def get_voter_stats(self, voter_id: str) -> VoterProfileStats:
        cache_key = cache_keys.voter_stats_key(voter_id)
        cached = self.cache_get(cache_key)
        if cached:
            prometheus_metrics.record_cache_lookup("voter_stats", hit=True)
            return {
                "voter_id": str(cached["voter_id"]),
                "total_votes": int(cached["total_votes"]),
                "average_score": float(cached["average_score"]),
                "score_distribution": normalize_score_counts(cached.get("score_distribution") or {}),
                "category_breakdown": {str(k): int(v) for k, v in (cached.get("category_breakdown") or {}).items()},
                "favorite_category": cached.get("favorite_category"),
            }
        prometheus_metrics.record_cache_lookup("voter_stats", hit=False)

        self._ensure_voter(voter_id)
        stats = self._compute_stats(voter_id)
        self.cache_set(cache_key, stats, ttl=cache_keys.VOTER_STATS_TTL)
        return stats

    def _compute_stats(self, voter_id: str) -> VoterProfileStats:
        votes = self.vote_repository.get_all_by_voter(voter_id)
        if not votes:
            return {
                "voter_id": voter_id,
                "total_votes": 0,
                "average_score": 0.0,
                "score_distribution": {},
                "category_breakdown": {},
                "favorite_category": None,
            }

        entities = self._load_entities(votes)
        distribution: Dict[int, int] = {}
        # Insertion order doubles as first-seen order for the favorite tie-break
        breakdown: Dict[str, int] = {}
        for vote in votes:
            distribution[vote.score] = distribution.get(vote.score, 0) + 1
            category = entities[vote.entity_id].category
            breakdown[category] = breakdown.get(category, 0) + 1

        favorite: Optional[str] = None
        best = 0
        for category, count in breakdown.items():
            if count > best:
                favorite, best = category, count

        return {
            "voter_id": voter_id,
            "total_votes": len(votes),
            "average_score": round(sum(v.score for v in votes) / len(votes), 2),
            "score_distribution": dict(sorted(distribution.items())),
            "category_breakdown": breakdown,
            "favorite_category": favorite,
        }

    def invalidate_voter_cache(self, voter_id: str) -> None:
        self.invalidate_cache(cache_keys.voter_stats_key(voter_id))
        self.invalidate_pattern(cache_keys.voter_profile_pattern(voter_id))
