from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from domain.aggregates.profile_aggregate import ProfileAggregate
from domain.value_objects.section import Section


ItemMap = Dict[str, Dict[str, Any]]


class ProfileAggregateResponse(BaseModel):
    """A user's profile data, each section keyed by surrogate id"""
    user_id: str
    vehicles: ItemMap = Field(default_factory=dict)
    favoriteSpots: ItemMap = Field(default_factory=dict)
    history: ItemMap = Field(default_factory=dict)
    activeStatus: ItemMap = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_aggregate(cls, aggregate: ProfileAggregate) -> "ProfileAggregateResponse":
        return cls(
            user_id=aggregate.user_id,
            vehicles=dict(aggregate.section(Section.VEHICLES)),
            favoriteSpots=dict(aggregate.section(Section.FAVORITE_SPOTS)),
            history=dict(aggregate.section(Section.HISTORY)),
            activeStatus=dict(aggregate.section(Section.ACTIVE_STATUS)),
            created_at=aggregate.created_at if aggregate.is_persisted else None,
            updated_at=aggregate.updated_at if aggregate.is_persisted else None,
        )


class UserReportEntry(BaseModel):
    """One user's line in a report: section counts, or an error marker"""
    user_id: str
    vehicles: Optional[int] = None
    favoriteSpots: Optional[int] = None
    history: Optional[int] = None
    activeStatus: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None


class UserReport(BaseModel):
    """Aggregated section counts across several users"""
    generated_at: str
    total_users: int
    successful_users: int
    failed_users: int
    total_vehicles: int
    total_favorite_spots: int
    total_history: int
    total_active_status: int
    users: List[UserReportEntry]


class DeleteResult(BaseModel):
    user_id: str
    deleted: bool


class HealthStatus(BaseModel):
    status: str
    worker_pool: Dict[str, Any]
