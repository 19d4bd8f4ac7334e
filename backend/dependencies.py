"""
Dependency injection providers for FastAPI.

This module provides factory functions for creating repository and service instances,
following the Dependency Inversion Principle. This allows for easier testing
and better separation of concerns.
"""

from sqlalchemy.orm import Session
from fastapi import Depends
from database import get_db, SessionLocal
from repositories.profile_repository import ProfileRepository
from services.batch_service import BatchService
from services.profile_service import ProfileService
from services.worker_pool import worker_pool


def get_profile_repository(db: Session = Depends(get_db)) -> ProfileRepository:
    """
    Factory function for creating ProfileRepository instances.

    Args:
        db: Database session (injected)

    Returns:
        ProfileRepository instance
    """
    return ProfileRepository(db)


def get_profile_service(repository: ProfileRepository = Depends(get_profile_repository)) -> ProfileService:
    """
    Factory function for creating ProfileService instances.

    Single-key operations run on the request's own session.
    """
    return ProfileService(repository)


def get_batch_service() -> BatchService:
    """
    Factory function for creating BatchService instances.

    Batch units open their own sessions on worker threads, so no request
    session is injected here.
    """
    return BatchService(worker_pool, session_factory=SessionLocal)
