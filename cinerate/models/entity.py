# cinerate/models/entity.py
"""Rated entities (movies) and the voters who rate them."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String

from ..core.ulid_helper import generate_ulid
from ..database import Base


class Entity(Base):
    """Something that can be rated. Title and category are the metadata used in profiles."""

    __tablename__ = "entities"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    title = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    release_year = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("idx_entities_category", "category"),)

    def __repr__(self) -> str:
        return f"<Entity {self.id} {self.title!r}>"


class Voter(Base):
    """Person casting votes."""

    __tablename__ = "voters"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    display_name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        return f"<Voter {self.id} {self.display_name!r}>"
