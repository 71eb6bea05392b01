import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..config.settings import DOWNLOAD_RECORDS_LIMIT, RETRY_BASE_DELAY, RETRY_MAX_ATTEMPTS
from ..core.errors import AlreadyExistsError, RepositoryError, StoreError
from ..models.content import ContentType
from ..models.student import DownloadRecord, StudentInfo, StudentInfoInput
from ..utils.db_utils import DocumentStore
from ..utils.performance import monitor_performance
from ..utils.retry import with_retry
from .content_service import ContentService

logger = logging.getLogger(__name__)

STUDENTS = "students"
DOWNLOADS = "downloads"


class DownloadService:
    """Student identities and the download audit trail"""

    def __init__(
        self,
        store: DocumentStore,
        content_service: ContentService,
        max_attempts: int = RETRY_MAX_ATTEMPTS,
        base_delay: float = RETRY_BASE_DELAY,
    ):
        self.store = store
        self.content_service = content_service
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def _retry(self, operation, description: str):
        return await with_retry(
            operation,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            description=description,
        )

    async def _register_student(self, email: str, student_data: dict, now: datetime) -> datetime:
        """
        Insert the student unless one is already stored under ``email`` and
        return the stored createdAt. The first submission wins; a concurrent
        insert that loses the race keeps the winner's record untouched.
        """
        existing = await self._retry(lambda: self.store.get(STUDENTS, email), f"Get student {email}")
        if existing is not None:
            return existing["createdAt"]

        try:
            await self._retry(
                lambda: self.store.create(STUDENTS, email, {**student_data, "createdAt": now}),
                f"Create student {email}",
            )
        except AlreadyExistsError:
            existing = await self._retry(lambda: self.store.get(STUDENTS, email), f"Get student {email}")
            if existing is None:
                raise
            return existing["createdAt"]

        logger.info(f"Registered new student {email}")
        return now

    @monitor_performance("downloads.record")
    async def record_student_download(
        self,
        content_id: str,
        content_title: str,
        content_type: ContentType,
        student_info: StudentInfoInput,
        ip_address: Optional[str] = None,
    ) -> str:
        """
        Record one download request.

        1. Save the student under their email unless already known
        2. Insert an immutable download record with a snapshot of the student
        3. Bump the content's download counter (best effort)

        Returns:
            str: The id of the new download record

        Raises:
            RepositoryError: If step 1 or 2 fails
        """
        now = datetime.now(timezone.utc)
        email = student_info.email
        student_data = student_info.model_dump(mode="json")

        try:
            registered_at = await self._register_student(email, student_data, now)

            record = {
                "contentId": content_id,
                "contentTitle": content_title,
                "contentType": ContentType(content_type).value,
                "studentInfo": {**student_data, "id": email, "createdAt": registered_at.isoformat()},
                "downloadDate": now,
                "ipAddress": ip_address,
            }
            download_id = await self._retry(lambda: self.store.add(DOWNLOADS, record), "Insert download record")
        except StoreError as e:
            logger.error(f"Error recording download of {content_id} by {email}: {e}")
            raise RepositoryError(f"Failed to record download: {e}", code=e.code) from e

        await self.content_service.increment_download_count(content_id)

        logger.info(f"Recorded download {download_id} of {content_id} by {email}")
        return download_id

    @monitor_performance("downloads.list")
    async def get_download_records(self, limit: int = DOWNLOAD_RECORDS_LIMIT) -> List[DownloadRecord]:
        """Most recent download records first; a limit of 0 or less returns all of them"""
        query = self.store.collection(DOWNLOADS).order_by("downloadDate", "desc")
        if limit > 0:
            query = query.limit(limit)

        try:
            rows = await self._retry(query.get, "List download records")
        except StoreError as e:
            logger.error(f"Error getting download records: {e}")
            raise RepositoryError(f"Failed to load download records: {e}", code=e.code) from e

        return [DownloadRecord.model_validate(row) for row in rows]

    async def get_student_info(self, email: str) -> Optional[StudentInfo]:
        key = email.strip().lower()
        try:
            row = await self._retry(lambda: self.store.get(STUDENTS, key), f"Get student {key}")
        except StoreError as e:
            logger.error(f"Error getting student info for {key}: {e}")
            return None

        return StudentInfo.model_validate(row) if row else None
