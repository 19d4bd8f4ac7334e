"""
Batch API endpoints

Multi-user reads, writes and reports executed on the worker pool.
These always answer 200 with a per-user breakdown; only a coordinator
fault (e.g. the pool refusing work) turns into an error response.
"""
from fastapi import APIRouter, Body, Depends, HTTPException
from typing import Any, Dict, List, Sized
import logging

from constants import BatchLimits, HTTPStatus
from dependencies import get_batch_service
from schemas import ProfileAggregateResponse, UserReport
from services.batch_service import BatchService
from utils.error_handlers import handle_api_errors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/manage/async")


def _check_batch_size(collection: Sized, limit: int, what: str) -> None:
    if len(collection) > limit:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Too many {what} in one batch ({len(collection)} > {limit})"
        )


@router.post("/batch/users", response_model=Dict[str, ProfileAggregateResponse])
@handle_api_errors("Batch get users")
async def get_multiple_users(
    user_ids: List[str] = Body(...),
    batch_service: BatchService = Depends(get_batch_service)
):
    """Get profile data for several users; users with no data are omitted."""
    logger.info(f"Async getMultipleUsers called for {len(user_ids)} users")
    _check_batch_size(user_ids, BatchLimits.MAX_USERS_PER_BATCH, "users")

    aggregates = await batch_service.submit(batch_service.get_many, user_ids)
    return {
        user_id: ProfileAggregateResponse.from_aggregate(aggregate)
        for user_id, aggregate in aggregates.items()
    }


@router.post("/batch/vehicles")
@handle_api_errors("Batch add vehicles")
async def batch_add_vehicles(
    user_vehicles: Dict[str, List[Dict[str, Any]]] = Body(...),
    batch_service: BatchService = Depends(get_batch_service)
) -> Dict[str, List[str]]:
    """
    Add vehicles for several users.

    Returns the ids that were added, per user. Vehicles that fail validation
    or storage are left out of their user's list.
    """
    logger.info(f"Async batchAddVehicles called for {len(user_vehicles)} users")
    _check_batch_size(user_vehicles, BatchLimits.MAX_USERS_PER_BATCH, "users")
    for vehicles in user_vehicles.values():
        _check_batch_size(vehicles, BatchLimits.MAX_ITEMS_PER_USER, "vehicles per user")

    return await batch_service.submit(batch_service.batch_add, user_vehicles)


@router.put("/{user_id}/batch/vehicles")
@handle_api_errors("Batch update vehicles")
async def batch_update_vehicles(
    user_id: str,
    vehicle_updates: Dict[str, Dict[str, Any]] = Body(...),
    batch_service: BatchService = Depends(get_batch_service)
) -> List[str]:
    """Update several vehicles of one user; returns the ids that were updated."""
    logger.info(f"Async batchUpdateVehicles called for user {user_id} with {len(vehicle_updates)} vehicles")
    _check_batch_size(vehicle_updates, BatchLimits.MAX_ITEMS_PER_USER, "vehicles")

    return await batch_service.submit(batch_service.batch_update, user_id, vehicle_updates)


@router.post("/report", response_model=UserReport, response_model_exclude_none=True)
@handle_api_errors("Generate report")
async def generate_report(
    user_ids: List[str] = Body(...),
    batch_service: BatchService = Depends(get_batch_service)
):
    """Section counts per user plus totals across the users that could be read."""
    logger.info(f"Async generateReport called for {len(user_ids)} users")
    _check_batch_size(user_ids, BatchLimits.MAX_USERS_PER_BATCH, "users")

    return await batch_service.submit(batch_service.generate_report, user_ids)
