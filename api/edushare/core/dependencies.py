"""
Store handle and service wiring for the routers.

The handle is built once at start-up (see main.lifespan) and kept on
``app.state``; services are cheap views over it created per request.
"""

from dataclasses import dataclass
import logging

from fastapi import Depends, Request

from ..config.database import create_db_engine
from ..config.settings import DATABASE_URL, RETRY_BASE_DELAY, RETRY_MAX_ATTEMPTS, S3_CONFIGURED
from ..services.content_service import ContentService
from ..services.download_service import DownloadService
from ..services.lecturer_service import LecturerService
from ..utils.db_utils import DocumentStore
from ..utils.s3_utils import BlobStore, LocalBlobStore, S3BlobStore
from .credentials import CredentialVerifier, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class StoreHandle:
    documents: DocumentStore
    blobs: BlobStore
    max_attempts: int = RETRY_MAX_ATTEMPTS
    base_delay: float = RETRY_BASE_DELAY


def build_store_handle(database_url: str = DATABASE_URL) -> StoreHandle:
    documents = DocumentStore(create_db_engine(database_url))
    documents.create_collections()

    if S3_CONFIGURED:
        blobs = S3BlobStore()
    else:
        blobs = LocalBlobStore()
        logger.info(f"Storing uploaded files locally in {blobs.root}")

    return StoreHandle(documents=documents, blobs=blobs)


def get_store(request: Request) -> StoreHandle:
    return request.app.state.store


def get_credential_verifier(request: Request) -> CredentialVerifier:
    return request.app.state.verifier


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_content_service(store: StoreHandle = Depends(get_store)) -> ContentService:
    return ContentService(
        store.documents,
        store.blobs,
        max_attempts=store.max_attempts,
        base_delay=store.base_delay,
    )


def get_lecturer_service(store: StoreHandle = Depends(get_store)) -> LecturerService:
    return LecturerService(store.documents, max_attempts=store.max_attempts, base_delay=store.base_delay)


def get_download_service(
    store: StoreHandle = Depends(get_store),
    content_service: ContentService = Depends(get_content_service),
) -> DownloadService:
    return DownloadService(
        store.documents,
        content_service,
        max_attempts=store.max_attempts,
        base_delay=store.base_delay,
    )
