# cinerate/repositories/entity_repository.py
"""Entity metadata and voter directory lookups."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.entity import Entity, Voter
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class EntityRepository(BaseRepository[Entity]):
    """Data access for `Entity`."""

    def __init__(self, db: Session):
        super().__init__(db, Entity)

    def create_entity(self, *, title: str, category: str, release_year: Optional[int] = None) -> Entity:
        return self.create(title=title, category=category, release_year=release_year)


class VoterRepository(BaseRepository[Voter]):
    """Data access for `Voter`."""

    def __init__(self, db: Session):
        super().__init__(db, Voter)

    def create_voter(self, *, display_name: str) -> Voter:
        return self.create(display_name=display_name)
