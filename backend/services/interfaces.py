"""
Service Interfaces

Abstract base classes for the persistence boundary used by the service layer.
This allows for dependency injection and easier testing/mocking.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from domain.aggregates.profile_aggregate import ProfileAggregate


class IProfileStore(ABC):
    """
    Persistence boundary for profile aggregates.

    No transactional guarantee is offered beyond a single document. Writes
    that pass expected_version are conditional: they fail with ConflictError
    when the stored version differs (0 means "must not exist yet").
    """

    @abstractmethod
    def get(self, user_id: str) -> Optional[ProfileAggregate]:
        """
        Fetch an aggregate by key.

        Returns:
            The aggregate, or None when no document exists (never raises for absence)

        Raises:
            StorageError: On transport/serialization failure
        """
        pass

    @abstractmethod
    def put(self, aggregate: ProfileAggregate, expected_version: Optional[int] = None) -> int:
        """
        Replace (or insert) the full document.

        Returns:
            The stored version after the write

        Raises:
            ConflictError: If expected_version no longer matches
            StorageError: On transport/serialization failure
        """
        pass

    @abstractmethod
    def set_field(
        self,
        user_id: str,
        field: str,
        value: Any,
        updated_at: Optional[datetime] = None,
        expected_version: Optional[int] = None
    ) -> int:
        """
        Upsert one top-level field, stamping the document's updated_at.

        Creates a minimal document for user_id when none exists.

        Returns:
            The stored version after the write

        Raises:
            ConflictError: If expected_version no longer matches
            StorageError: On transport/serialization failure
        """
        pass

    @abstractmethod
    def delete(self, user_id: str) -> bool:
        """
        Remove the document. Absence is not an error.

        Returns:
            True if a document was removed
        """
        pass
