"""
Repository layer for data access abstraction.

This package contains repository classes that encapsulate database queries
and provide a clean interface for data access operations.
"""

from .base_repository import BaseRepository
from .profile_repository import ProfileRepository

__all__ = [
    "BaseRepository",
    "ProfileRepository",
]
