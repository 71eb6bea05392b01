import logging
from datetime import datetime, timezone
from typing import Optional

from ..config.settings import RETRY_BASE_DELAY, RETRY_MAX_ATTEMPTS
from ..core.errors import AlreadyExistsError, RepositoryError, StoreError, UnavailableError
from ..models.lecturer import LecturerProfile, LecturerProfileCreate, LecturerProfileUpdate
from ..utils.db_utils import DocumentStore
from ..utils.performance import monitor_performance
from ..utils.retry import with_retry

logger = logging.getLogger(__name__)

LECTURERS = "lecturers"

# Fields a lecturer may clear by sending null
OPTIONAL_FIELDS = {"phone", "office"}


class LecturerService:
    def __init__(
        self,
        store: DocumentStore,
        max_attempts: int = RETRY_MAX_ATTEMPTS,
        base_delay: float = RETRY_BASE_DELAY,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def _retry(self, operation, description: str):
        return await with_retry(
            operation,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            description=description,
        )

    @monitor_performance("lecturers.get")
    async def get_lecturer_profile(self, lecturer_id: str, strict: bool = False) -> Optional[LecturerProfile]:
        """
        Load one profile, or None when it does not exist.

        An unavailable store also yields None unless ``strict`` is set, in
        which case it raises RepositoryError with code ``unavailable``.
        """
        try:
            row = await self._retry(lambda: self.store.get(LECTURERS, lecturer_id), f"Get lecturer {lecturer_id}")
        except StoreError as e:
            if e.code == UnavailableError.code and not strict:
                logger.warning(f"Lecturer store unavailable: {e}")
                return None
            logger.error(f"Error getting lecturer profile {lecturer_id}: {e}")
            raise RepositoryError(f"Failed to load lecturer profile: {e}", code=e.code) from e

        return LecturerProfile.model_validate(row) if row else None

    @monitor_performance("lecturers.create")
    async def create_lecturer_profile(self, lecturer_id: str, profile: LecturerProfileCreate) -> LecturerProfile:
        """
        Create the profile stored under ``lecturer_id``; both timestamps are set to now.

        An existing profile is never replaced: the call fails with code
        ``already-exists`` instead.
        """
        now = datetime.now(timezone.utc)
        data = {**profile.model_dump(), "createdAt": now, "updatedAt": now}

        try:
            await self._retry(lambda: self.store.create(LECTURERS, lecturer_id, data), f"Create lecturer {lecturer_id}")
        except StoreError as e:
            if e.code == AlreadyExistsError.code:
                logger.warning(f"Lecturer profile {lecturer_id} already exists")
                raise RepositoryError(f"Lecturer profile {lecturer_id} already exists", code=e.code) from e
            logger.error(f"Error creating lecturer profile {lecturer_id}: {e}")
            raise RepositoryError(f"Failed to create profile: {e}", code=e.code) from e

        logger.info(f"Created lecturer profile {lecturer_id}")
        return LecturerProfile(id=lecturer_id, **data)

    @monitor_performance("lecturers.update")
    async def update_lecturer_profile(self, lecturer_id: str, changes: LecturerProfileUpdate) -> None:
        """Apply a partial update; only updatedAt is restamped, createdAt never changes"""
        data = {
            field: value for field, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or field in OPTIONAL_FIELDS
        }
        data["updatedAt"] = datetime.now(timezone.utc)

        try:
            await self._retry(lambda: self.store.update(LECTURERS, lecturer_id, data), f"Update lecturer {lecturer_id}")
        except StoreError as e:
            logger.error(f"Error updating lecturer profile {lecturer_id}: {e}")
            raise RepositoryError(f"Failed to update profile: {e}", code=e.code) from e

        logger.info(f"Updated lecturer profile {lecturer_id}: {', '.join(sorted(data))}")

    @monitor_performance("lecturers.main")
    async def get_main_lecturer(self) -> Optional[LecturerProfile]:
        """The earliest created profile; the site assumes a single lecturer"""
        query = self.store.collection(LECTURERS).order_by("createdAt", "asc").limit(1)
        try:
            rows = await self._retry(query.get, "Get main lecturer")
        except StoreError as e:
            if e.code == UnavailableError.code:
                logger.warning(f"Lecturer store unavailable: {e}")
                return None
            logger.error(f"Error getting main lecturer: {e}")
            raise RepositoryError(f"Failed to load lecturer information: {e}", code=e.code) from e

        return LecturerProfile.model_validate(rows[0]) if rows else None
