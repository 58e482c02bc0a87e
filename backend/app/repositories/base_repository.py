# backend/app/repositories/base_repository.py
"""
Base Repository Pattern for the quinielas platform.

Provides the foundation for all repository classes with:
- Common CRUD operations
- Type safety with generics
- Query builder helpers

Repositories never commit: the service layer owns the transaction. Storage
errors are logged and re-raised unchanged so callers can tell a constraint
violation from a connection failure.
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        """
        Retrieve an entity by its primary key.

        Implements eager loading for relationships when requested.
        """
        query = self._build_query().filter(self.model.id == id)
        if load_relationships:
            query = self._apply_eager_loading(query)
        return self._execute_first(query)

    def create(self, **kwargs) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        entity = self.model(**kwargs)
        try:
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
        except SQLAlchemyError as exc:
            self.logger.error("Error creating %s: %s", self.model.__name__, exc)
            raise
        return entity

    def update(self, id: str, **kwargs) -> Optional[T]:
        """Update only the provided fields of an existing entity."""
        entity = self.get_by_id(id, load_relationships=False)
        if entity is None:
            return None
        for key, value in kwargs.items():
            if hasattr(entity, key):
                setattr(entity, key, value)
        self.flush()
        return entity

    def delete(self, id: str) -> bool:
        """Delete an entity by its primary key. Returns False if not found."""
        entity = self.get_by_id(id, load_relationships=False)
        if entity is None:
            return False
        self.db.delete(entity)
        self.flush()
        return True

    def count(self, **kwargs) -> int:
        return self._build_query().filter_by(**kwargs).count()

    def find_by(self, **kwargs) -> List[T]:
        """Find entities by exact-match criteria."""
        return self._execute_query(self._build_query().filter_by(**kwargs))

    def find_one_by(self, **kwargs) -> Optional[T]:
        return self._execute_first(self._build_query().filter_by(**kwargs))

    def bulk_create(self, entities: List[Dict[str, Any]]) -> List[T]:
        """
        Create multiple entities in one flush.

        Args:
            entities: List of entity data dictionaries

        Returns:
            List of created entities (ids populated)
        """
        db_entities = [self.model(**data) for data in entities]
        self.db.add_all(db_entities)
        self.flush()
        return db_entities

    def flush(self) -> None:
        """Flush pending ORM changes."""
        try:
            self.db.flush()
        except SQLAlchemyError as exc:
            self.logger.error("Flush failed for %s: %s", self.model.__name__, exc)
            raise

    def refresh(self, instance: T) -> None:
        """Refresh an instance from the database."""
        self.db.refresh(instance)

    # Protected helper methods for use by subclasses

    def _apply_eager_loading(self, query: Query) -> Query:
        """
        Apply eager loading to relationships.

        Override in subclasses to specify which relationships to load.
        """
        return query

    def _build_query(self) -> Query:
        """Get base query for the model."""
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[T]:
        try:
            return query.all()
        except SQLAlchemyError as exc:
            self.logger.error("Query execution error: %s", exc)
            raise

    def _execute_first(self, query: Query) -> Optional[T]:
        try:
            return query.first()
        except SQLAlchemyError as exc:
            self.logger.error("Query execution error: %s", exc)
            raise
