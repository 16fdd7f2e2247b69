# cinerate/repositories/vote_repository.py
"""
Vote store.

Follows repository pattern: no business logic, DB-only operations.
Missing rows come back as None (or False for delete); the service layer
decides whether that is an error.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypedDict, cast

from sqlalchemy import func
from sqlalchemy.engine import Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.vote import Vote
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

DEFAULT_GLOBAL_MEAN = 3.0

SORTABLE_COLUMNS = {
    "created_at": Vote.created_at,
    "updated_at": Vote.updated_at,
    "score": Vote.score,
}
SORT_ORDERS = ("asc", "desc")


class EntityAggregate(TypedDict):
    total_votes: int
    average_score: float
    score_counts: Dict[int, int]


class EntityAverage(TypedDict):
    total_votes: int
    average_score: float


class VoteRepository(BaseRepository[Vote]):
    """Data access for `Vote`."""

    def __init__(self, db: Session):
        super().__init__(db, Vote)
        self.logger = logging.getLogger(__name__)

    def save(self, vote: Vote) -> Vote:
        """Insert a new vote. Raises UniqueViolationException on a duplicate (voter, entity)."""
        return self.add(vote)

    def get_by_voter_and_entity(self, voter_id: str, entity_id: str) -> Optional[Vote]:
        try:
            return cast(
                Optional[Vote],
                self.db.query(Vote)
                .filter(Vote.voter_id == voter_id, Vote.entity_id == entity_id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching vote for voter {voter_id} on {entity_id}: {e}")
            raise RepositoryException("Failed to fetch vote") from e

    def _ordered(self, query: Any, sort_by: str, order: str) -> Any:
        column = SORTABLE_COLUMNS.get(sort_by, Vote.created_at)
        if order == "asc":
            return query.order_by(column.asc(), Vote.id.asc())
        return query.order_by(column.desc(), Vote.id.desc())

    def get_by_voter(
        self,
        voter_id: str,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "created_at",
        order: str = "desc",
    ) -> List[Vote]:
        try:
            q = self.db.query(Vote).filter(Vote.voter_id == voter_id)
            return cast(List[Vote], self._ordered(q, sort_by, order).offset(offset).limit(limit).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing votes for voter {voter_id}: {e}")
            raise RepositoryException("Failed to list voter votes") from e

    def get_by_entity(
        self,
        entity_id: str,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "created_at",
        order: str = "desc",
    ) -> List[Vote]:
        try:
            q = self.db.query(Vote).filter(Vote.entity_id == entity_id)
            return cast(List[Vote], self._ordered(q, sort_by, order).offset(offset).limit(limit).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing votes for entity {entity_id}: {e}")
            raise RepositoryException("Failed to list entity votes") from e

    def get_all_by_voter(self, voter_id: str) -> List[Vote]:
        """Every vote of a voter, oldest first (ties broken by id)."""
        try:
            return cast(
                List[Vote],
                self.db.query(Vote)
                .filter(Vote.voter_id == voter_id)
                .order_by(Vote.created_at.asc(), Vote.id.asc())
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading votes for voter {voter_id}: {e}")
            raise RepositoryException("Failed to load voter votes") from e

    def count_by_voter(self, voter_id: str) -> int:
        try:
            return int(
                self.db.query(func.count(Vote.id)).filter(Vote.voter_id == voter_id).scalar() or 0
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting votes for voter {voter_id}: {e}")
            raise RepositoryException("Failed to count voter votes") from e

    def count_by_entity(self, entity_id: str) -> int:
        try:
            return int(
                self.db.query(func.count(Vote.id)).filter(Vote.entity_id == entity_id).scalar() or 0
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting votes for entity {entity_id}: {e}")
            raise RepositoryException("Failed to count entity votes") from e

    def entity_aggregate(self, entity_id: str) -> EntityAggregate:
        """Vote count, mean score and per-score histogram for one entity."""
        try:
            rows = cast(
                Sequence[Row[Any]],
                self.db.query(
                    Vote.score.label("score"),
                    func.count(Vote.id).label("votes"),
                )
                .filter(Vote.entity_id == entity_id)
                .group_by(Vote.score)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating votes for entity {entity_id}: {e}")
            raise RepositoryException("Failed to aggregate entity votes") from e

        score_counts: Dict[int, int] = {}
        total = 0
        score_sum = 0
        for row in rows:
            mapping: Mapping[str, Any] = row._mapping
            score = int(mapping["score"])
            votes = int(mapping["votes"] or 0)
            score_counts[score] = votes
            total += votes
            score_sum += score * votes

        average = round(score_sum / total, 2) if total else 0.0
        return {
            "total_votes": total,
            "average_score": average,
            "score_counts": dict(sorted(score_counts.items())),
        }

    def entity_averages(self, entity_ids: List[str]) -> Dict[str, EntityAverage]:
        """Mean and count for a batch of entities. Entities without votes are absent."""
        if not entity_ids:
            return {}
        try:
            rows = cast(
                Sequence[Row[Any]],
                self.db.query(
                    Vote.entity_id.label("entity_id"),
                    func.count(Vote.id).label("total_votes"),
                    func.avg(Vote.score * 1.0).label("average_score"),
                )
                .filter(Vote.entity_id.in_(list(set(entity_ids))))
                .group_by(Vote.entity_id)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error aggregating entity averages: {e}")
            raise RepositoryException("Failed to aggregate entity averages") from e

        result: Dict[str, EntityAverage] = {}
        for row in rows:
            mapping = row._mapping
            result[str(mapping["entity_id"])] = {
                "total_votes": int(mapping["total_votes"] or 0),
                "average_score": round(float(mapping["average_score"] or 0.0), 2),
            }
        return result

    def global_mean(self, default: float = DEFAULT_GLOBAL_MEAN) -> float:
        """Population mean over every vote, rounded to 2 decimals; `default` when empty."""
        try:
            value = self.db.query(func.avg(Vote.score * 1.0)).scalar()
        except SQLAlchemyError as e:
            self.logger.error(f"Error computing global mean: {e}")
            raise RepositoryException("Failed to compute global mean") from e
        if value is None:
            return float(default)
        return round(float(value), 2)
