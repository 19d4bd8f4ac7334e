"""
Domain Value Objects

Value objects are immutable types that represent descriptive aspects of the domain.
They have no conceptual identity and are compared by their values, not by ID.

Examples:
- Section: One of the four item collections of a profile aggregate
"""

from .section import Section

__all__ = ["Section"]
