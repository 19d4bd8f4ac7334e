"""
Batch Service

Fans profile operations out across the worker pool, one unit per user, and
fans the outcomes back in as per-user results or a summary report.

A failure for one user (or one item) is logged and reflected in the result;
it never fails the whole call. Only coordinator faults, such as the pool
rejecting work, propagate.

Items for the same user are applied one after another inside a single unit,
never in parallel with each other.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar
import logging
import time

from sqlalchemy.orm import Session, sessionmaker

from config.settings import settings
from database import SessionLocal
from domain.aggregates.profile_aggregate import ProfileAggregate, extract_item_id
from domain.value_objects.section import Section
from exceptions import ApplicationError, ConflictError, ResourceNotFoundError
from repositories.profile_repository import ProfileRepository
from services.profile_service import ProfileService, summarize
from services.worker_pool import BatchHandle, CancellationToken, WorkerPool
from utils.logging_utils import clear_logging_context, log_operation, set_logging_context

logger = logging.getLogger(__name__)

R = TypeVar('R')

CONFLICT_BACKOFF_SECONDS = 0.01


class BatchService:
    """Concurrent fan-out/fan-in over ProfileService."""

    def __init__(
        self,
        pool: WorkerPool,
        session_factory: Callable[[], Session] | sessionmaker = SessionLocal,
        conflict_retries: int = settings.conflict_retries
    ):
        """
        Args:
            pool: Worker pool that executes per-user units
            session_factory: Creates one database session per unit
            conflict_retries: Extra attempts for an item whose write hit a ConflictError
        """
        self.pool = pool
        self.session_factory = session_factory
        self.conflict_retries = conflict_retries

    def submit(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> BatchHandle:
        """
        Schedule one of this service's batch operations and return a cancellable handle.

        Example:
            handle = batch_service.submit(batch_service.generate_report, ["u1", "u2"])
            report = await handle
        """
        return self.pool.schedule(lambda token: operation(*args, token=token, **kwargs))

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    @log_operation("get_many")
    async def get_many(
        self,
        user_ids: Iterable[str],
        token: Optional[CancellationToken] = None
    ) -> Dict[str, ProfileAggregate]:
        """
        Read several aggregates concurrently.

        Users without stored data are logged and omitted from the result.
        """
        outcomes = await self.pool.fan_out(user_ids, self._load_unit, token)

        found: Dict[str, ProfileAggregate] = {}
        for user_id, outcome in outcomes.items():
            if isinstance(outcome, ResourceNotFoundError):
                logger.warning(f"User {user_id} not found: {outcome.message}")
            elif isinstance(outcome, BaseException):
                logger.error(f"Failed to read profile data for user {user_id}: {outcome}")
            else:
                found[user_id] = outcome
        return found

    @log_operation("batch_add")
    async def batch_add(
        self,
        user_items: Mapping[str, Sequence[Mapping[str, Any]]],
        section: Section = Section.VEHICLES,
        token: Optional[CancellationToken] = None
    ) -> Dict[str, List[str]]:
        """
        Add items for several users.

        Returns:
            user_id -> ids of the items that were added (every requested user appears)
        """
        def unit(user_id: str) -> List[str]:
            return self._with_service(
                user_id, lambda service: self._add_items(service, user_id, section, user_items[user_id])
            )

        outcomes = await self.pool.fan_out(user_items.keys(), unit, token)
        return {
            user_id: self._ids_or_empty(user_id, outcome, "batch add")
            for user_id, outcome in outcomes.items()
        }

    @log_operation("batch_update")
    async def batch_update(
        self,
        user_id: str,
        updates: Mapping[str, Mapping[str, Any]],
        section: Section = Section.VEHICLES,
        token: Optional[CancellationToken] = None
    ) -> List[str]:
        """
        Update several items of one user.

        Returns:
            Ids of the items that were updated
        """
        def unit(key: str) -> List[str]:
            return self._with_service(key, lambda service: self._update_items(service, key, section, updates))

        outcomes = await self.pool.fan_out([user_id], unit, token)
        return self._ids_or_empty(user_id, outcomes[user_id], "batch update")

    @log_operation("generate_report")
    async def generate_report(
        self,
        user_ids: Iterable[str],
        token: Optional[CancellationToken] = None
    ) -> Dict[str, Any]:
        """
        Summarize section sizes for several users.

        Each requested user gets an entry: section counts, or an error marker
        when the read failed. Totals cover the successfully read users only.
        """
        requested = list(dict.fromkeys(user_ids))
        outcomes = await self.pool.fan_out(requested, self._load_unit, token)

        totals = {section: 0 for section in Section}
        users: List[Dict[str, Any]] = []
        successful = 0
        for user_id in requested:
            outcome = outcomes[user_id]
            if isinstance(outcome, ProfileAggregate):
                users.append(summarize(outcome))
                for section in Section:
                    totals[section] += len(outcome.section(section))
                successful += 1
            elif isinstance(outcome, ResourceNotFoundError):
                users.append({'user_id': user_id, 'error': 'User not found', 'message': outcome.message})
            else:
                logger.error(f"Report read failed for user {user_id}: {outcome}")
                users.append({
                    'user_id': user_id,
                    'error': type(outcome).__name__,
                    'message': getattr(outcome, 'message', str(outcome)),
                })

        return {
            'generated_at': datetime.now(timezone.utc).isoformat(),
            'total_users': len(requested),
            'successful_users': successful,
            'failed_users': len(requested) - successful,
            'total_vehicles': totals[Section.VEHICLES],
            'total_favorite_spots': totals[Section.FAVORITE_SPOTS],
            'total_history': totals[Section.HISTORY],
            'total_active_status': totals[Section.ACTIVE_STATUS],
            'users': users,
        }

    # ------------------------------------------------------------------
    # Units (run on worker threads)
    # ------------------------------------------------------------------

    def _with_service(self, user_id: str, work: Callable[[ProfileService], R]) -> R:
        set_logging_context(user_id=user_id)
        db = self.session_factory()
        try:
            return work(ProfileService(ProfileRepository(db)))
        finally:
            db.close()
            clear_logging_context()

    def _load_unit(self, user_id: str) -> ProfileAggregate:
        return self._with_service(user_id, lambda service: service.load_aggregate(user_id))

    def _add_items(
        self,
        service: ProfileService,
        user_id: str,
        section: Section,
        items: Sequence[Mapping[str, Any]]
    ) -> List[str]:
        added: List[str] = []
        for index, item in enumerate(items or []):
            try:
                stored = self._retry_conflicts(lambda: service.add_item(user_id, section, item))
            except ApplicationError as e:
                logger.error(f"Failed to add {section.label.lower()} #{index} for user {user_id}: {e.message}")
                continue
            except Exception as e:
                logger.error(f"Failed to add {section.label.lower()} #{index} for user {user_id}: {e}", exc_info=True)
                continue
            added.append(extract_item_id(section, stored))
        return added

    def _update_items(
        self,
        service: ProfileService,
        user_id: str,
        section: Section,
        updates: Mapping[str, Mapping[str, Any]]
    ) -> List[str]:
        updated: List[str] = []
        for item_id, item in updates.items():
            try:
                self._retry_conflicts(lambda: service.update_item(user_id, section, item_id, item))
            except ApplicationError as e:
                logger.error(f"Failed to update {section.label.lower()} {item_id} for user {user_id}: {e.message}")
                continue
            except Exception as e:
                logger.error(f"Failed to update {section.label.lower()} {item_id} for user {user_id}: {e}", exc_info=True)
                continue
            updated.append(item_id)
        return updated

    def _retry_conflicts(self, action: Callable[[], R]) -> R:
        attempt = 0
        while True:
            try:
                return action()
            except ConflictError as e:
                if attempt >= self.conflict_retries:
                    raise
                attempt += 1
                logger.info(f"Write conflict, retrying ({attempt}/{self.conflict_retries}): {e.message}")
                time.sleep(CONFLICT_BACKOFF_SECONDS * attempt)

    @staticmethod
    def _ids_or_empty(user_id: str, outcome: Any, operation: str) -> List[str]:
        if isinstance(outcome, BaseException):
            logger.error(f"{operation} failed for user {user_id}: {outcome}")
            return []
        return outcome
