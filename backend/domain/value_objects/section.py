"""
Section Value Object

The four named item collections held by a profile aggregate.
"""

from enum import Enum
from typing import Dict


class Section(str, Enum):
    """
    Section enum whose values are the persisted document field names.

    Each section keys its items by a fixed surrogate-id field.
    """

    VEHICLES = "vehicles"
    FAVORITE_SPOTS = "favoriteSpots"
    HISTORY = "history"
    ACTIVE_STATUS = "activeStatus"

    @property
    def id_field(self) -> str:
        """Name of the surrogate-id field items in this section must carry."""
        return _ID_FIELDS[self]

    @property
    def attribute(self) -> str:
        """Mapped attribute name on the ORM record."""
        return _ATTRIBUTES[self]

    @property
    def label(self) -> str:
        """Human-readable item name used in error messages."""
        return _LABELS[self]

    @property
    def route_segment(self) -> str:
        """URL segment used by the HTTP layer."""
        return _ROUTE_SEGMENTS[self]

    @classmethod
    def from_string(cls, value: str) -> "Section":
        """
        Resolve a section from its field name or URL segment.

        Args:
            value: e.g. "favoriteSpots" or "favoriteSpot"

        Returns:
            Section instance

        Raises:
            ValueError: If value names no section
        """
        for section in cls:
            if value in (section.value, section.route_segment):
                return section
        raise ValueError(f"Unknown section: {value}")


_ID_FIELDS: Dict[Section, str] = {
    Section.VEHICLES: "vehicle_id",
    Section.FAVORITE_SPOTS: "spot_id",
    Section.HISTORY: "history_id",
    Section.ACTIVE_STATUS: "active_id",
}

_ATTRIBUTES: Dict[Section, str] = {
    Section.VEHICLES: "vehicles",
    Section.FAVORITE_SPOTS: "favorite_spots",
    Section.HISTORY: "history",
    Section.ACTIVE_STATUS: "active_status",
}

_LABELS: Dict[Section, str] = {
    Section.VEHICLES: "Vehicle",
    Section.FAVORITE_SPOTS: "Favorite spot",
    Section.HISTORY: "History",
    Section.ACTIVE_STATUS: "Active status",
}

_ROUTE_SEGMENTS: Dict[Section, str] = {
    Section.VEHICLES: "vehicle",
    Section.FAVORITE_SPOTS: "favoriteSpot",
    Section.HISTORY: "history",
    Section.ACTIVE_STATUS: "activeStatus",
}
