"""
Base repository providing common CRUD operations.
"""

from contextlib import contextmanager
from typing import Any, Generic, Iterator, List, Optional, Protocol, Type, TypeVar
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from exceptions import StorageError

logger = logging.getLogger(__name__)


class HasId(Protocol):
    """Models usable with BaseRepository expose their primary key as `id`."""

    id: Any


T = TypeVar('T', bound=HasId)


class BaseRepository(Generic[T]):
    """
    Generic base repository for simple entities.

    Every database call made through `storage_operation` is translated into
    StorageError on failure, with the session rolled back.
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize the repository.

        Args:
            db: SQLAlchemy database session
            model: SQLAlchemy model class exposing an `id` attribute
        """
        self.db = db
        self.model = model

    @contextmanager
    def storage_operation(self, operation: str) -> Iterator[None]:
        """
        Wrap a unit of database work.

        Args:
            operation: Name used in logs and in the raised StorageError

        Raises:
            StorageError: If SQLAlchemy raises anything
        """
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[{operation}] {self.model.__name__} storage failure: {e}", exc_info=True)
            raise StorageError(operation, f"{operation} failed for {self.model.__name__}: {e}") from e

    def get_by_id(self, id: str) -> Optional[T]:
        """
        Retrieve a record by its ID.

        Returns:
            Model instance or None if not found
        """
        with self.storage_operation("get_by_id"):
            return self.db.query(self.model).filter(self.model.id == id).first()

    def delete_by_id(self, id: str) -> bool:
        """
        Delete a record by its ID.

        Returns:
            True if deleted, False if not found
        """
        with self.storage_operation("delete_by_id"):
            deleted = self.db.query(self.model).filter(self.model.id == id).delete(synchronize_session=False)
            self.db.commit()
            return deleted > 0

    def exists(self, id: str) -> bool:
        with self.storage_operation("exists"):
            return self.db.query(self.model).filter(self.model.id == id).count() > 0

    def count(self) -> int:
        with self.storage_operation("count"):
            return self.db.query(self.model).count()

    def list_ids(self, limit: Optional[int] = None, offset: int = 0) -> List[str]:
        """Primary keys of stored records, in key order."""
        with self.storage_operation("list_ids"):
            query = self.db.query(self.model.id).order_by(self.model.id)
            if offset:
                query = query.offset(offset)
            if limit:
                query = query.limit(limit)
            return [row[0] for row in query.all()]
