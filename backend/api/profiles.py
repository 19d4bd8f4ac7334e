"""
Profile API endpoints

Single-user reads and section-level add/update/delete. These run
synchronously on the request's own session.
"""
from fastapi import APIRouter, Body, Depends, HTTPException, Response
from typing import Any, Dict
import logging

from constants import HTTPStatus
from dependencies import get_profile_service
from domain.value_objects.section import Section
from schemas import DeleteResult, ProfileAggregateResponse
from services.profile_service import ProfileService
from utils.error_handlers import handle_api_errors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/manage")


def resolve_section(section: str) -> Section:
    """Map a URL segment (vehicle, favoriteSpot, history, activeStatus) to a Section."""
    try:
        return Section.from_string(section)
    except ValueError:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=f"Unknown section: {section}")


@router.get("/{user_id}", response_model=ProfileAggregateResponse)
@handle_api_errors("Get profile data")
def get_profile(user_id: str, service: ProfileService = Depends(get_profile_service)):
    """
    Get a user's profile data.

    Users with nothing stored get four empty sections.
    """
    logger.info(f"getProfile called for user {user_id}")
    return ProfileAggregateResponse.from_aggregate(service.get_aggregate(user_id))


@router.delete("/{user_id}", response_model=DeleteResult)
@handle_api_errors("Delete profile data")
def delete_profile(user_id: str, service: ProfileService = Depends(get_profile_service)):
    """Delete a user's whole profile document."""
    return DeleteResult(user_id=user_id, deleted=service.delete_aggregate(user_id))


@router.post("/{user_id}/{section}", status_code=HTTPStatus.CREATED)
@handle_api_errors("Add item")
def add_item(
    user_id: str,
    target: Section = Depends(resolve_section),
    item: Dict[str, Any] = Body(...),
    service: ProfileService = Depends(get_profile_service)
) -> Dict[str, Any]:
    """
    Add an item to one section of a user's profile.

    An item with the same surrogate id replaces the existing one.
    """
    logger.info(f"addItem called for user {user_id}, section {target.value}")
    return service.add_item(user_id, target, item)


@router.put("/{user_id}/{section}/{item_id}")
@handle_api_errors("Update item")
def update_item(
    user_id: str,
    item_id: str,
    target: Section = Depends(resolve_section),
    item: Dict[str, Any] = Body(...),
    service: ProfileService = Depends(get_profile_service)
) -> Dict[str, Any]:
    """
    Replace an existing item.

    The id in the path must equal the item's surrogate id.
    """
    logger.info(f"updateItem called for user {user_id}, section {target.value}, item {item_id}")
    return service.update_item(user_id, target, item_id, item)


@router.delete("/{user_id}/{section}/{item_id}", status_code=HTTPStatus.NO_CONTENT)
@handle_api_errors("Delete item")
def delete_item(
    user_id: str,
    item_id: str,
    target: Section = Depends(resolve_section),
    service: ProfileService = Depends(get_profile_service)
):
    """Remove an item from one section of a user's profile."""
    logger.info(f"deleteItem called for user {user_id}, section {target.value}, item {item_id}")
    service.delete_item(user_id, target, item_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)
