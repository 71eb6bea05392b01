import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from ..config.settings import RETRY_BASE_DELAY, RETRY_MAX_ATTEMPTS
from ..core.errors import RepositoryError, StoreError, UnavailableError
from ..models.content import (
    ContentCreate, ContentRecord, ContentStatistics, ContentType, FileUpload,
    FILE_CONTENT_TYPES, STORAGE_FOLDERS, VisibilityLevel, parse_content,
)
from ..utils.db_utils import CollectionQuery, DocumentStore
from ..utils.file_utils import sanitize_filename
from ..utils.performance import monitor_performance
from ..utils.retry import with_retry
from ..utils.s3_utils import BlobStore

logger = logging.getLogger(__name__)

CONTENT = "content"
STUDENTS = "students"


class ContentService:
    """Queries and mutations for content records and their files"""

    def __init__(
        self,
        store: DocumentStore,
        blobs: BlobStore,
        max_attempts: int = RETRY_MAX_ATTEMPTS,
        base_delay: float = RETRY_BASE_DELAY,
    ):
        self.store = store
        self.blobs = blobs
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def _retry(self, operation, description: str):
        return await with_retry(
            operation,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            description=description,
        )

    def content_query(self, is_privileged: bool) -> CollectionQuery:
        """Newest-first content query; unprivileged callers only ever match public records"""
        query = self.store.collection(CONTENT)
        if not is_privileged:
            query = query.where("visibility", "==", VisibilityLevel.PUBLIC.value)
        return query.order_by("uploadDate", "desc")

    @monitor_performance("content.list")
    async def list_content(self, is_privileged: bool = False) -> List[ContentRecord]:
        """
        Get all content visible to the caller, newest first.

        Returns an empty list when the store stays unavailable after retries.
        """
        try:
            rows = await self._retry(self.content_query(is_privileged).get, "List content")
        except StoreError as e:
            if e.code == UnavailableError.code:
                logger.warning(f"Content store unavailable, returning no content: {e}")
                return []
            logger.error(f"Error getting content: {e}")
            raise RepositoryError(f"Failed to load content: {e}", code=e.code) from e

        return [parse_content(row) for row in rows]

    @monitor_performance("content.get")
    async def get_content(self, content_id: str, is_privileged: bool = False) -> Optional[ContentRecord]:
        query = self.store.collection(CONTENT).where("id", "==", content_id)
        if not is_privileged:
            query = query.where("visibility", "==", VisibilityLevel.PUBLIC.value)

        try:
            rows = await self._retry(query.limit(1).get, f"Get content {content_id}")
        except StoreError as e:
            logger.error(f"Error getting content {content_id}: {e}")
            raise RepositoryError(f"Failed to load content: {e}", code=e.code) from e

        return parse_content(rows[0]) if rows else None

    async def get_content_by_type(self, content_type: ContentType, is_privileged: bool = False) -> List[ContentRecord]:
        content = await self.list_content(is_privileged)
        return [item for item in content if item.contentType == content_type]

    @monitor_performance("content.upload")
    async def upload_content(self, metadata: ContentCreate, file: Optional[FileUpload] = None) -> str:
        """
        Store a new content record, uploading its file first for pdf and
        powerpoint content. Video content keeps the caller's videoURL and never
        touches the blob store.

        Returns:
            str: The id of the new record
        """
        content_type = metadata.contentType
        record = metadata.model_dump(mode="json")

        if content_type in FILE_CONTENT_TYPES:
            if file is None:
                raise ValueError(f"A file is required for {content_type.value} content")

            path = f"{STORAGE_FOLDERS[content_type]}/{int(time.time() * 1000)}_{sanitize_filename(file.filename)}"
            try:
                download_url = await self._retry(
                    lambda: self.blobs.put(path, file.data, file.content_type),
                    f"Upload file {path}",
                )
            except StoreError as e:
                logger.error(f"Error uploading file for '{metadata.title}': {e}")
                raise RepositoryError(f"Failed to upload content: {e}", code=e.code) from e

            record.update(fileName=file.filename, fileSize=file.size, downloadURL=download_url)
        elif file is not None:
            logger.debug(f"Ignoring file {file.filename} sent with {content_type.value} content")

        record.update(uploadDate=datetime.now(timezone.utc), downloads=0, views=0)

        try:
            content_id = await self._retry(lambda: self.store.add(CONTENT, record), "Insert content")
        except StoreError as e:
            logger.error(f"Error saving content '{metadata.title}': {e}")
            raise RepositoryError(f"Failed to upload content: {e}", code=e.code) from e

        logger.info(f"Uploaded {content_type.value} content {content_id} ('{metadata.title}', {metadata.visibility.value})")
        return content_id

    async def _increment(self, content_id: str, field: str) -> None:
        # Single attempt; a lost count must never block the download or view itself
        try:
            await with_retry(
                lambda: self.store.increment(CONTENT, content_id, field),
                max_attempts=1,
                description=f"Increment {field} of {content_id}",
            )
        except Exception as e:
            logger.warning(f"{field} count update failed for {content_id}, continuing: {e}")

    async def increment_download_count(self, content_id: str) -> None:
        await self._increment(content_id, "downloads")

    async def increment_view_count(self, content_id: str) -> None:
        await self._increment(content_id, "views")

    @monitor_performance("content.delete")
    async def delete_content(self, content_id: str, blob_url: Optional[str] = None) -> None:
        """
        Delete the record, then its file.

        The file is only touched once the record is gone. If deleting the file
        fails the record stays deleted and the file is left orphaned.
        """
        try:
            await self._retry(lambda: self.store.delete(CONTENT, content_id), f"Delete content {content_id}")
        except StoreError as e:
            logger.error(f"Error deleting content {content_id}: {e}")
            raise RepositoryError(f"Failed to delete content: {e}", code=e.code) from e

        if blob_url:
            try:
                await self._retry(lambda: self.blobs.delete(blob_url), f"Delete file of {content_id}")
            except StoreError as e:
                logger.error(f"Content {content_id} deleted but its file was orphaned at {blob_url}: {e}")
                raise RepositoryError(f"Failed to delete content file: {e}", code=e.code) from e

        logger.info(f"Deleted content {content_id}")

    @monitor_performance("content.statistics")
    async def get_content_statistics(self) -> ContentStatistics:
        try:
            rows, total_students = await asyncio.gather(
                self._retry(self.store.collection(CONTENT).get, "Load content for statistics"),
                self._retry(self.store.collection(STUDENTS).count, "Count students"),
            )
        except StoreError as e:
            logger.error(f"Error getting content statistics: {e}")
            raise RepositoryError(f"Failed to load statistics: {e}", code=e.code) from e

        content = [parse_content(row) for row in rows]
        return ContentStatistics(
            totalContent=len(content),
            totalDownloads=sum(item.downloads for item in content),
            totalViews=sum(item.views for item in content),
            totalStudents=total_students,
            contentByType={
                content_type: len([item for item in content if item.contentType == content_type])
                for content_type in ContentType
            },
            publicContent=len([item for item in content if item.visibility == VisibilityLevel.PUBLIC]),
            privateContent=len([item for item in content if item.visibility == VisibilityLevel.LECTURER_ONLY]),
        )
