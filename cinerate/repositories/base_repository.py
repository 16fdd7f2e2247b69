# cinerate/repositories/base_repository.py
"""
Base repository for the vote store.

Provides:
- Common CRUD operations over one SQLAlchemy model
- Translation of driver errors into RepositoryException
- Detection of unique-constraint violations at insert time

Repositories never commit. Transaction boundaries belong to the service layer.
"""

import logging
from typing import Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, UniqueViolationException

T = TypeVar("T")

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """Best-effort check that an IntegrityError came from a UNIQUE constraint."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(orig if orig is not None else exc).lower()
    return "unique" in message or "duplicate key" in message


class BaseRepository(Generic[T]):
    """
    Concrete base repository with default CRUD behaviour.

    Attributes:
        db: SQLAlchemy session (managed by service layer)
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.query(self.model).filter(self.model.id == id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}") from e

    def add(self, instance: T) -> T:
        """
        Persist a constructed instance.

        Note: Does NOT commit - transaction management is handled by service layer.

        Raises:
            UniqueViolationException: If a uniqueness constraint rejects the row
            RepositoryException: For any other store failure
        """
        try:
            self.db.add(instance)
            self.db.flush()
            return instance
        except IntegrityError as exc:
            self.db.rollback()
            if is_unique_violation(exc):
                self.logger.info("Unique constraint rejected %s insert", self.model.__name__)
                raise UniqueViolationException(
                    f"{self.model.__name__} violates a uniqueness constraint"
                ) from exc
            self.logger.error("Integrity error creating %s: %s", self.model.__name__, exc)
            raise RepositoryException(f"Integrity constraint violated for {self.model.__name__}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to create {self.model.__name__}") from e

    def create(self, **kwargs) -> T:
        return self.add(self.model(**kwargs))

    def update(self, instance: T) -> T:
        """Flush in-place changes of a loaded instance."""
        try:
            self.db.flush()
            return instance
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating {self.model.__name__}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to update {self.model.__name__}") from e

    def delete(self, id: str) -> bool:
        """Returns False if the row does not exist."""
        try:
            instance = self.get_by_id(id)
            if not instance:
                return False
            self.db.delete(instance)
            self.db.flush()
            return True
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting {self.model.__name__} {id}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to delete {self.model.__name__}") from e

    def exists(self, **kwargs) -> bool:
        try:
            return self.db.query(self.model.id).filter_by(**kwargs).first() is not None
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking existence: {str(e)}")
            raise RepositoryException("Failed to check existence") from e

    def get_many(self, ids: List[str]) -> List[T]:
        if not ids:
            return []
        try:
            return self.db.query(self.model).filter(self.model.id.in_(list(set(ids)))).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading {self.model.__name__} batch: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__} list") from e
