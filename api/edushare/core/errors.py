"""
Error taxonomy shared by the store adapters, the services and the routers.

Store adapters raise ``StoreError`` subclasses tagged with a ``code``. The
retry wrapper decides from that code whether another attempt can help, and
the services re-raise exhausted failures as ``RepositoryError`` carrying a
human-readable message for the client.
"""

from typing import Optional

from fastapi import status


class StoreError(Exception):
    """A document or blob store call failed"""

    code = "unknown"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code


class PermissionDeniedError(StoreError):
    code = "permission-denied"


class NotFoundError(StoreError):
    code = "not-found"


class UnavailableError(StoreError):
    code = "unavailable"


class AlreadyExistsError(StoreError):
    code = "already-exists"


class RepositoryError(Exception):
    """Raised by the services once a store failure is final"""

    def __init__(self, message: str, code: str = "unknown"):
        super().__init__(message)
        self.message = message
        self.code = code


class AuthError(Exception):
    """Credential verification or session resolution failed"""


_STATUS_BY_CODE = {
    PermissionDeniedError.code: status.HTTP_403_FORBIDDEN,
    NotFoundError.code: status.HTTP_404_NOT_FOUND,
    UnavailableError.code: status.HTTP_503_SERVICE_UNAVAILABLE,
    AlreadyExistsError.code: status.HTTP_409_CONFLICT,
}


def http_status_for(error: RepositoryError) -> int:
    return _STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
