"""
Domain Aggregates

Aggregates are clusters of domain objects that can be treated as a single unit.
The aggregate root is the only member of the aggregate that outside objects
are allowed to hold references to.

Examples:
- ProfileAggregate: Groups a user's vehicles, favorite spots, history and active status
"""

from .profile_aggregate import ProfileAggregate, Item, utc_now, extract_item_id

__all__ = ["ProfileAggregate", "Item", "utc_now", "extract_item_id"]
