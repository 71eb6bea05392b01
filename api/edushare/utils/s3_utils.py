import asyncio
import io
import logging
import os
from typing import Optional
from urllib.parse import quote, unquote, urlparse

import boto3
from botocore.exceptions import (
    BotoCoreError, ClientError, ConnectTimeoutError, EndpointConnectionError,
    NoCredentialsError, ReadTimeoutError,
)

from ..config.settings import (
    AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_REGION,
    S3_BUCKET_NAME, S3_BASE_URL, S3_ENDPOINT_URL,
    FILES_DIR, LOCAL_FILES_BASE_URL,
)
from ..core.errors import NotFoundError, PermissionDeniedError, StoreError, UnavailableError
from .file_utils import ensure_dir

logger = logging.getLogger(__name__)

_DENIED_CODES = {"AccessDenied", "403", "InvalidAccessKeyId", "SignatureDoesNotMatch", "AllAccessDisabled"}
_MISSING_CODES = {"NoSuchKey", "NoSuchBucket", "NotFound", "404"}
_TRANSIENT_CODES = {"SlowDown", "ServiceUnavailable", "InternalError", "RequestTimeout", "Throttling", "503", "500"}


def _translate_boto_error(e: Exception, action: str) -> StoreError:
    """Map a boto3/botocore failure onto the store error taxonomy"""
    message = f"{action} failed: {e}"
    if isinstance(e, ClientError):
        code = e.response.get("Error", {}).get("Code", "")
        status_code = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        if code in _DENIED_CODES or status_code == 403:
            return PermissionDeniedError(message)
        if code in _MISSING_CODES or status_code == 404:
            return NotFoundError(message)
        if code in _TRANSIENT_CODES or status_code >= 500:
            return UnavailableError(message)
        return StoreError(message)
    if isinstance(e, NoCredentialsError):
        return PermissionDeniedError(message)
    if isinstance(e, (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)):
        return UnavailableError(message)
    return StoreError(message)


class BlobStore:
    """Stores file bytes under a path and hands back a retrievable URL"""

    base_url: str = ""

    async def put(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        raise NotImplementedError

    async def delete(self, url: str) -> None:
        raise NotImplementedError

    def url_for(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{quote(path)}"

    def key_for_url(self, url: str) -> str:
        """Recover the storage path from a URL produced by url_for"""
        prefix = self.base_url.rstrip('/') + '/'
        if url.startswith(prefix):
            return unquote(url[len(prefix):])
        return unquote(urlparse(url).path.lstrip('/'))


class S3BlobStore(BlobStore):
    def __init__(self, client=None, bucket: Optional[str] = S3_BUCKET_NAME, base_url: Optional[str] = S3_BASE_URL):
        self.bucket = bucket
        self.base_url = base_url or ""
        self.client = client if client is not None else self._create_client()

    def _create_client(self):
        """Create S3 client with proper validation"""
        if not all([AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, S3_BUCKET_NAME]):
            logger.warning("S3 configuration incomplete. S3 operations will be disabled.")
            return None

        client = boto3.client(
            's3',
            aws_access_key_id=AWS_ACCESS_KEY_ID,
            aws_secret_access_key=AWS_SECRET_ACCESS_KEY,
            region_name=AWS_REGION,
            endpoint_url=S3_ENDPOINT_URL or None,
        )
        logger.info(f"S3 client initialized successfully for region: {AWS_REGION}")
        return client

    def _check_available(self) -> None:
        """Check if S3 is available and provide helpful error message"""
        if self.client is None or not self.bucket:
            missing_vars = [
                name for name, value in (
                    ("AWS_ACCESS_KEY_ID", AWS_ACCESS_KEY_ID),
                    ("AWS_SECRET_ACCESS_KEY", AWS_SECRET_ACCESS_KEY),
                    ("S3_BUCKET_NAME", self.bucket),
                ) if not value
            ]
            raise UnavailableError(f"S3 is not available. Missing environment variables: {', '.join(missing_vars)}")

    async def put(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        self._check_available()
        extra_args = {'ContentType': content_type} if content_type else {}
        try:
            await asyncio.to_thread(
                self.client.upload_fileobj, io.BytesIO(data), self.bucket, path, ExtraArgs=extra_args
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate_boto_error(e, f"Upload of {path} to S3") from e
        logger.info(f"Uploaded {path} to S3 ({len(data)} bytes)")
        return self.url_for(path)

    async def delete(self, url: str) -> None:
        self._check_available()
        key = self.key_for_url(url)
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _translate_boto_error(e, f"Delete of {key} from S3") from e
        logger.info(f"Deleted {key} from S3")


class LocalBlobStore(BlobStore):
    """Keeps files on local disk; used when S3 is not configured"""

    def __init__(self, root: str = FILES_DIR, base_url: str = LOCAL_FILES_BASE_URL):
        self.root = os.path.abspath(root)
        self.base_url = base_url

    def _resolve(self, path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([full_path, self.root]) != self.root:
            raise PermissionDeniedError(f"Path escapes the storage root: {path}")
        return full_path

    def _write_file(self, full_path: str, data: bytes) -> None:
        ensure_dir(os.path.dirname(full_path))
        with open(full_path, 'wb') as f:
            f.write(data)

    async def put(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        full_path = self._resolve(path)
        try:
            await asyncio.to_thread(self._write_file, full_path, data)
        except PermissionError as e:
            raise PermissionDeniedError(f"Saving {path} failed: {e}") from e
        except OSError as e:
            raise UnavailableError(f"Saving {path} failed: {e}") from e
        logger.info(f"Saved {path} to local storage ({len(data)} bytes)")
        return self.url_for(path)

    async def delete(self, url: str) -> None:
        key = self.key_for_url(url)
        full_path = self._resolve(key)
        try:
            await asyncio.to_thread(os.remove, full_path)
        except FileNotFoundError as e:
            raise NotFoundError(f"File not found: {key}") from e
        except PermissionError as e:
            raise PermissionDeniedError(f"Deleting {key} failed: {e}") from e
        except OSError as e:
            raise UnavailableError(f"Deleting {key} failed: {e}") from e
        logger.info(f"Deleted {key} from local storage")
