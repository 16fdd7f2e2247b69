# cinerate/models/vote.py
"""
Vote model.

Design notes:
- ULID string IDs everywhere (26 chars)
- Timezone-aware timestamps
- One vote per (voter, entity) via DB unique constraint
- Score range enforced both here and by a CHECK constraint
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint

from ..core.exceptions import ValidationException
from ..core.ulid_helper import generate_ulid
from ..database import Base

MIN_SCORE = 1
MAX_SCORE = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_score(score: object) -> int:
    if isinstance(score, bool) or not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationException(
            f"Score must be an integer between {MIN_SCORE} and {MAX_SCORE}",
            code="INVALID_SCORE",
            details={"score": score},
        )
    return score


class Vote(Base):
    """A single voter's score and comment for one entity."""

    __tablename__ = "votes"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    voter_id = Column(String(26), ForeignKey("voters.id", ondelete="CASCADE"), nullable=False)
    entity_id = Column(String(26), ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)

    score = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("voter_id", "entity_id", name="uq_votes_voter_entity"),
        CheckConstraint("score >= 1 AND score <= 5", name="ck_votes_score_range"),
        Index("idx_votes_voter_created", "voter_id", "created_at"),
        Index("idx_votes_entity", "entity_id"),
    )

    @classmethod
    def build(
        cls,
        *,
        voter_id: str,
        entity_id: str,
        score: int,
        comment: Optional[str] = "",
        now: Optional[datetime] = None,
    ) -> "Vote":
        """Validate and construct a new, not yet persisted vote."""
        if not voter_id or not str(voter_id).strip():
            raise ValidationException("Voter ID cannot be empty", code="MISSING_VOTER_ID")
        if not entity_id or not str(entity_id).strip():
            raise ValidationException("Entity ID cannot be empty", code="MISSING_ENTITY_ID")
        validate_score(score)

        stamp = now or _utcnow()
        return cls(
            id=generate_ulid(),
            voter_id=voter_id,
            entity_id=entity_id,
            score=score,
            comment=(comment or "").strip(),
            created_at=stamp,
            updated_at=stamp,
        )

    def update_score(self, score: int, now: Optional[datetime] = None) -> None:
        self.score = validate_score(score)
        self.updated_at = now or _utcnow()

    def update_comment(self, comment: Optional[str], now: Optional[datetime] = None) -> None:
        self.comment = (comment or "").strip()
        self.updated_at = now or _utcnow()

    def __repr__(self) -> str:
        return f"<Vote {self.id} voter={self.voter_id} entity={self.entity_id} score={self.score}>"
