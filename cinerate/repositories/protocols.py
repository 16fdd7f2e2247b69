"""Narrow interfaces the services depend on."""

from typing import Dict, List, Optional, Protocol

from ..models.entity import Entity
from ..models.vote import Vote
from .vote_repository import EntityAggregate, EntityAverage


class VoteStore(Protocol):
    def save(self, vote: Vote) -> Vote:
        ...

    def get_by_id(self, id: str) -> Optional[Vote]:
        ...

    def get_by_voter_and_entity(self, voter_id: str, entity_id: str) -> Optional[Vote]:
        ...

    def get_by_voter(
        self, voter_id: str, limit: int = ..., offset: int = ..., sort_by: str = ..., order: str = ...
    ) -> List[Vote]:
        ...

    def get_by_entity(
        self, entity_id: str, limit: int = ..., offset: int = ..., sort_by: str = ..., order: str = ...
    ) -> List[Vote]:
        ...

    def get_all_by_voter(self, voter_id: str) -> List[Vote]:
        ...

    def count_by_voter(self, voter_id: str) -> int:
        ...

    def count_by_entity(self, entity_id: str) -> int:
        ...

    def update(self, instance: Vote) -> Vote:
        ...

    def delete(self, id: str) -> bool:
        ...

    def entity_aggregate(self, entity_id: str) -> EntityAggregate:
        ...

    def entity_averages(self, entity_ids: List[str]) -> Dict[str, EntityAverage]:
        ...

    def global_mean(self, default: float = ...) -> float:
        ...


class PriorSource(Protocol):
    """The slice of the vote store the prior refresher reads."""

    def global_mean(self, default: float = ...) -> float:
        ...


class EntityMetadataProvider(Protocol):
    def get_by_id(self, id: str) -> Optional[Entity]:
        ...

    def get_many(self, ids: List[str]) -> List[Entity]:
        ...
