"""
Profile repository: the document-store boundary for profile aggregates.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from domain.aggregates.profile_aggregate import ProfileAggregate, utc_now
from domain.value_objects.section import Section
from exceptions import ConflictError
from models import ProfileAggregateRecord
from services.interfaces import IProfileStore
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ProfileRepository(BaseRepository[ProfileAggregateRecord], IProfileStore):
    """
    Repository for ProfileAggregateRecord documents.

    Every write increments the document's version. Conditional writes
    (expected_version given) run as `UPDATE ... WHERE version = :expected`
    and raise ConflictError when no row matches, so a writer working from a
    stale read cannot silently overwrite a newer section.
    """

    def __init__(self, db: Session):
        super().__init__(db, ProfileAggregateRecord)

    def get(self, user_id: str) -> Optional[ProfileAggregate]:
        with self.storage_operation("get"):
            record = self.get_by_id(user_id)
            aggregate = ProfileAggregate.from_document(record.to_document()) if record else None
            # Release the read snapshot so the following write runs in its own transaction
            self.db.commit()
        return aggregate

    def put(self, aggregate: ProfileAggregate, expected_version: Optional[int] = None) -> int:
        document = aggregate.to_document()
        values: Dict[str, Any] = {
            section.attribute: document[section.value] for section in Section
        }
        values['updated_at'] = aggregate.updated_at

        with self.storage_operation("put"):
            if expected_version == 0:
                return self._insert(aggregate.user_id, values, created_at=aggregate.created_at)

            if self._conditional_update(aggregate.user_id, values, expected_version):
                return self._committed_version(aggregate.user_id, expected_version)

            if expected_version is not None:
                self.db.rollback()
                raise ConflictError(aggregate.user_id, expected_version)
            return self._insert(aggregate.user_id, values, created_at=aggregate.created_at)

    def set_field(
        self,
        user_id: str,
        field: str,
        value: Any,
        updated_at: Optional[datetime] = None,
        expected_version: Optional[int] = None
    ) -> int:
        try:
            section = Section(field)
        except ValueError:
            raise ValueError(f"Unknown profile field: {field}")

        stamp = updated_at or utc_now()
        values: Dict[str, Any] = {section.attribute: value, 'updated_at': stamp}

        with self.storage_operation("set_field"):
            if expected_version == 0:
                return self._insert(user_id, values, created_at=stamp)

            if self._conditional_update(user_id, values, expected_version):
                version = self._committed_version(user_id, expected_version)
                logger.debug(f"Set {field} for user {user_id} (version {version})")
                return version

            if expected_version is not None:
                self.db.rollback()
                raise ConflictError(user_id, expected_version)
            return self._insert(user_id, values, created_at=stamp)

    def delete(self, user_id: str) -> bool:
        deleted = self.delete_by_id(user_id)
        if deleted:
            logger.info(f"Deleted profile data for user {user_id}")
        else:
            logger.debug(f"No profile data to delete for user {user_id}")
        return deleted

    def _conditional_update(self, user_id: str, values: Dict[str, Any], expected_version: Optional[int]) -> bool:
        assignments = {getattr(self.model, name): value for name, value in values.items()}
        assignments[self.model.version] = self.model.version + 1

        stmt = update(self.model).where(self.model.user_id == user_id)
        if expected_version is not None:
            stmt = stmt.where(self.model.version == expected_version)
        stmt = stmt.values(assignments).execution_options(synchronize_session=False)
        result = self.db.execute(stmt)
        return result.rowcount > 0

    def _committed_version(self, user_id: str, expected_version: Optional[int]) -> int:
        if expected_version is not None:
            version = expected_version + 1
        else:
            version = self.db.query(self.model.version).filter(self.model.user_id == user_id).scalar()
        self.db.commit()
        return version

    def _insert(self, user_id: str, values: Dict[str, Any], created_at: datetime) -> int:
        row: Dict[str, Any] = {
            'user_id': user_id,
            'vehicles': [],
            'favorite_spots': [],
            'history': [],
            'active_status': [],
            'created_at': created_at,
            'updated_at': created_at,
            'version': 1,
        }
        row.update(values)
        stmt = insert(self.model).values({getattr(self.model, name): value for name, value in row.items()})
        try:
            self.db.execute(stmt)
            self.db.commit()
        except IntegrityError:
            # Another writer created the document between our read and this insert
            self.db.rollback()
            raise ConflictError(
                user_id, 0, f"Profile data for {user_id} was created concurrently; retry the operation"
            )
        logger.info(f"Created profile data for user {user_id}")
        return 1
