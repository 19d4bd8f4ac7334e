"""
Profile Service

Owns the read-modify-write protocol for profile aggregates: validation,
item location, timestamp stamping, conflict detection and re-persistence.

Every section-level add/update/delete follows the same cycle:
1. validate the item (non-empty, carries the section's surrogate id)
2. load the aggregate (add creates it lazily; update/delete require it)
3. mutate the id-keyed section
4. stamp the item and the aggregate
5. write the section back with the version read in step 2; a concurrent
   writer in between makes the write fail with ConflictError instead of
   silently discarding the other change
"""

from typing import Any, Dict, Mapping, Optional
import logging

from domain.aggregates.profile_aggregate import (
    Item,
    ProfileAggregate,
    extract_item_id,
    format_timestamp,
    utc_now,
)
from domain.value_objects.section import Section
from exceptions import ResourceNotFoundError, ValidationError
from services.interfaces import IProfileStore

logger = logging.getLogger(__name__)

USER_DATA = "User data"


class ProfileService:
    """Service for profile aggregate business logic."""

    def __init__(self, store: IProfileStore):
        """
        Initialize ProfileService.

        Args:
            store: Persistence boundary (ProfileRepository in production)
        """
        self.store = store

    # ------------------------------------------------------------------
    # Query side
    # ------------------------------------------------------------------

    def get_aggregate(self, user_id: str) -> ProfileAggregate:
        """
        Read a user's aggregate.

        Returns an aggregate with four empty sections when nothing is stored.
        """
        self._validate_user_id(user_id)
        aggregate = self.store.get(user_id)
        if aggregate is None:
            logger.debug(f"No profile data for {user_id}, returning empty aggregate")
            return ProfileAggregate.empty(user_id)
        return aggregate

    def load_aggregate(self, user_id: str) -> ProfileAggregate:
        """
        Read a user's aggregate, requiring it to exist.

        Raises:
            ResourceNotFoundError: If no document is stored for user_id
        """
        self._validate_user_id(user_id)
        aggregate = self.store.get(user_id)
        if aggregate is None:
            raise ResourceNotFoundError(USER_DATA, user_id)
        return aggregate

    # ------------------------------------------------------------------
    # Command side
    # ------------------------------------------------------------------

    def add_item(self, user_id: str, section: Section, item: Optional[Mapping[str, Any]]) -> Item:
        """
        Add an item to a section, replacing any item with the same surrogate id.

        Creates the aggregate if the user has none yet.

        Returns:
            The stored item (with created_at/updated_at stamped)

        Raises:
            ValidationError: If the item is empty or lacks its surrogate id
            ConflictError: If the aggregate changed since it was read
            StorageError: If the store fails
        """
        self._validate_user_id(user_id)
        item_id = self._validate_item(section, item)

        aggregate = self.store.get(user_id)
        if aggregate is None:
            aggregate = ProfileAggregate.empty(user_id)
            logger.info(f"Creating profile data for user {user_id}")

        now = aggregate.touch(utc_now())
        stamp = format_timestamp(now)
        stored = dict(item)
        stored['created_at'] = stamp
        stored['updated_at'] = stamp
        aggregate.upsert_item(section, stored)

        self._persist_section(aggregate, section)
        logger.info(f"Added {section.label.lower()} {item_id} for user {user_id}")
        return stored

    def update_item(
        self,
        user_id: str,
        section: Section,
        item_id: str,
        item: Optional[Mapping[str, Any]]
    ) -> Item:
        """
        Replace the fields of an existing item.

        The path id must match the item's surrogate id exactly; the item keeps
        its first created_at.

        Raises:
            ValidationError: If the item is invalid or the ids disagree
            ResourceNotFoundError: If the aggregate or the item does not exist
            ConflictError: If the aggregate changed since it was read
            StorageError: If the store fails
        """
        self._validate_user_id(user_id)
        self._validate_item(section, item)
        body_id = item[section.id_field]
        if body_id != item_id:
            raise ValidationError(
                section.id_field,
                f"{section.label} ID in path doesn't match request body ({item_id!r} != {body_id!r})"
            )

        aggregate = self.load_aggregate(user_id)
        existing = aggregate.get_item(section, item_id)
        if existing is None:
            raise ResourceNotFoundError(section.label, item_id)

        now = aggregate.touch(utc_now())
        stored = dict(item)
        stored['created_at'] = existing.get('created_at', format_timestamp(aggregate.created_at))
        stored['updated_at'] = format_timestamp(now)
        aggregate.replace_item(section, item_id, stored)

        self._persist_section(aggregate, section)
        logger.info(f"Updated {section.label.lower()} {item_id} for user {user_id}")
        return stored

    def delete_item(self, user_id: str, section: Section, item_id: str) -> None:
        """
        Remove an item from a section.

        Raises:
            ValidationError: If item_id is blank
            ResourceNotFoundError: If the aggregate or the item does not exist
            ConflictError: If the aggregate changed since it was read
            StorageError: If the store fails
        """
        self._validate_user_id(user_id)
        if item_id is None or not str(item_id).strip():
            raise ValidationError(section.id_field, f"{section.label} ID is required")

        aggregate = self.load_aggregate(user_id)
        if not aggregate.remove_item(section, item_id):
            raise ResourceNotFoundError(section.label, item_id)

        aggregate.touch(utc_now())
        self._persist_section(aggregate, section)
        logger.info(f"Deleted {section.label.lower()} {item_id} for user {user_id}")

    def delete_aggregate(self, user_id: str) -> bool:
        """Remove the user's whole document. Absence is not an error."""
        self._validate_user_id(user_id)
        return self.store.delete(user_id)

    # ------------------------------------------------------------------
    # Section shortcuts
    # ------------------------------------------------------------------

    def add_vehicle(self, user_id: str, vehicle: Mapping[str, Any]) -> Item:
        return self.add_item(user_id, Section.VEHICLES, vehicle)

    def update_vehicle(self, user_id: str, vehicle_id: str, vehicle: Mapping[str, Any]) -> Item:
        return self.update_item(user_id, Section.VEHICLES, vehicle_id, vehicle)

    def delete_vehicle(self, user_id: str, vehicle_id: str) -> None:
        self.delete_item(user_id, Section.VEHICLES, vehicle_id)

    def add_favorite_spot(self, user_id: str, spot: Mapping[str, Any]) -> Item:
        return self.add_item(user_id, Section.FAVORITE_SPOTS, spot)

    def update_favorite_spot(self, user_id: str, spot_id: str, spot: Mapping[str, Any]) -> Item:
        return self.update_item(user_id, Section.FAVORITE_SPOTS, spot_id, spot)

    def delete_favorite_spot(self, user_id: str, spot_id: str) -> None:
        self.delete_item(user_id, Section.FAVORITE_SPOTS, spot_id)

    def add_history(self, user_id: str, history_item: Mapping[str, Any]) -> Item:
        return self.add_item(user_id, Section.HISTORY, history_item)

    def update_history(self, user_id: str, history_id: str, history_item: Mapping[str, Any]) -> Item:
        return self.update_item(user_id, Section.HISTORY, history_id, history_item)

    def delete_history(self, user_id: str, history_id: str) -> None:
        self.delete_item(user_id, Section.HISTORY, history_id)

    def add_active_status(self, user_id: str, status: Mapping[str, Any]) -> Item:
        return self.add_item(user_id, Section.ACTIVE_STATUS, status)

    def update_active_status(self, user_id: str, active_id: str, status: Mapping[str, Any]) -> Item:
        return self.update_item(user_id, Section.ACTIVE_STATUS, active_id, status)

    def delete_active_status(self, user_id: str, active_id: str) -> None:
        self.delete_item(user_id, Section.ACTIVE_STATUS, active_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_user_id(user_id: Optional[str]) -> None:
        if user_id is None or not str(user_id).strip():
            raise ValidationError("user_id", "User ID is required")

    @staticmethod
    def _validate_item(section: Section, item: Optional[Mapping[str, Any]]) -> str:
        if not item:
            raise ValidationError(section.value, f"{section.label} data cannot be empty")
        if not isinstance(item, Mapping):
            raise ValidationError(section.value, f"{section.label} data must be an object")
        item_id = extract_item_id(section, item)
        if item_id is None:
            raise ValidationError(section.id_field, f"{section.label} ID is required")
        return item_id

    def _persist_section(self, aggregate: ProfileAggregate, section: Section) -> None:
        aggregate.version = self.store.set_field(
            aggregate.user_id,
            section.value,
            aggregate.section_list(section),
            updated_at=aggregate.updated_at,
            expected_version=aggregate.version,
        )


def summarize(aggregate: ProfileAggregate) -> Dict[str, Any]:
    """Per-section item counts for one user, as used in reports."""
    summary: Dict[str, Any] = {'user_id': aggregate.user_id}
    summary.update(aggregate.counts())
    return summary
