"""
ProfileAggregate

In-memory representation of one user's profile document: four sections,
each an id-keyed collection of item property bags.

The store keeps sections as ordered lists; this aggregate keeps them as
dicts keyed by surrogate id so every item is addressable and unique within
its section. Conversion happens only at the storage boundary
(from_document / to_document / section_list).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
import logging

from domain.value_objects.section import Section

logger = logging.getLogger(__name__)

Item = Dict[str, Any]


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (the store keeps naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 string used for item-level timestamps."""
    return value.isoformat(timespec='microseconds') + 'Z'


def extract_item_id(section: Section, item: Optional[Mapping[str, Any]]) -> Optional[str]:
    """
    Return the string form of the item's surrogate id, used as its section key.

    The stored field value itself is left as the caller supplied it.

    Returns:
        The id, or None when the field is absent, None or blank
    """
    if not item:
        return None
    raw = item.get(section.id_field)
    if raw is None:
        return None
    item_id = str(raw)
    if not item_id.strip():
        return None
    return item_id


def _empty_sections() -> Dict[Section, Dict[str, Item]]:
    return {section: {} for section in Section}


def _parse_timestamp(value: Any, fallback: datetime) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo is None else value.astimezone(timezone.utc).replace(tzinfo=None)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return fallback
        return _parse_timestamp(parsed, fallback)
    return fallback


@dataclass
class ProfileAggregate:
    """
    Aggregate root for one user's profile data.

    Invariants:
    - every section exists (possibly empty)
    - surrogate ids are unique within a section
    - updated_at never moves backwards (see touch())
    """

    user_id: str
    created_at: datetime
    updated_at: datetime
    version: int = 0
    sections: Dict[Section, Dict[str, Item]] = field(default_factory=_empty_sections)

    @classmethod
    def empty(cls, user_id: str, now: Optional[datetime] = None) -> "ProfileAggregate":
        """New aggregate with all four sections empty and both timestamps set to now."""
        now = now or utc_now()
        return cls(user_id=user_id, created_at=now, updated_at=now)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "ProfileAggregate":
        """
        Build an aggregate from its stored document.

        Missing section fields read as empty sections. Stored items that
        lack a surrogate id cannot be addressed and are skipped.
        """
        now = utc_now()
        created_at = _parse_timestamp(document.get('created_at'), now)
        aggregate = cls(
            user_id=str(document['user_id']),
            created_at=created_at,
            updated_at=_parse_timestamp(document.get('updated_at'), created_at),
            version=int(document.get('version') or 0),
        )
        for section in Section:
            for raw_item in document.get(section.value) or []:
                item_id = extract_item_id(section, raw_item)
                if item_id is None:
                    logger.warning(
                        f"Skipping stored {section.value} item without {section.id_field} "
                        f"for user {aggregate.user_id}"
                    )
                    continue
                aggregate.sections[section][item_id] = dict(raw_item)
        return aggregate

    def to_document(self) -> Dict[str, Any]:
        """Stored layout: one ordered list per section plus key and timestamps."""
        document: Dict[str, Any] = {'user_id': self.user_id}
        for section in Section:
            document[section.value] = self.section_list(section)
        document['created_at'] = self.created_at
        document['updated_at'] = self.updated_at
        document['version'] = self.version
        return document

    @property
    def vehicles(self) -> Dict[str, Item]:
        return self.sections[Section.VEHICLES]

    @property
    def favorite_spots(self) -> Dict[str, Item]:
        return self.sections[Section.FAVORITE_SPOTS]

    @property
    def history(self) -> Dict[str, Item]:
        return self.sections[Section.HISTORY]

    @property
    def active_status(self) -> Dict[str, Item]:
        return self.sections[Section.ACTIVE_STATUS]

    @property
    def is_persisted(self) -> bool:
        """True once the aggregate has been written at least once."""
        return self.version > 0

    def section(self, section: Section) -> Dict[str, Item]:
        return self.sections[section]

    def section_list(self, section: Section) -> List[Item]:
        return [dict(item) for item in self.sections[section].values()]

    def get_item(self, section: Section, item_id: Any) -> Optional[Item]:
        return self.sections[section].get(str(item_id))

    def upsert_item(self, section: Section, item: Item) -> str:
        """
        Insert an item, replacing any item with the same surrogate id.

        Returns:
            The item's surrogate id

        Raises:
            ValueError: If the item carries no usable surrogate id
        """
        item_id = extract_item_id(section, item)
        if item_id is None:
            raise ValueError(f"{section.label} item has no {section.id_field}")
        target = self.sections[section]
        target.pop(item_id, None)
        target[item_id] = item
        return item_id

    def replace_item(self, section: Section, item_id: Any, item: Item) -> bool:
        """
        Replace an existing item in place.

        Returns:
            False if no item with item_id exists (nothing changed)
        """
        target = self.sections[section]
        key = str(item_id)
        if key not in target:
            return False
        target[key] = item
        return True

    def remove_item(self, section: Section, item_id: Any) -> bool:
        """
        Remove an item.

        Returns:
            False if no item with item_id exists
        """
        return self.sections[section].pop(str(item_id), None) is not None

    def touch(self, now: Optional[datetime] = None) -> datetime:
        """Advance updated_at to now, never backwards. Returns the new value."""
        now = now or utc_now()
        if now < self.updated_at:
            now = self.updated_at
        self.updated_at = now
        return now

    def counts(self) -> Dict[str, int]:
        """Number of items per section, keyed by section field name."""
        return {section.value: len(items) for section, items in self.sections.items()}

    def total_items(self) -> int:
        return sum(len(items) for items in self.sections.values())
