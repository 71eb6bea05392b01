from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fastapi import Depends, HTTPException, status
from typing import Optional
import logging

from .credentials import ANONYMOUS, Session, SessionStore
from .dependencies import get_session_store
from .errors import AuthError

logger = logging.getLogger(__name__)

# Anonymous visitors are allowed, so a missing token is not an error here
_scheme = HTTPBearer(auto_error=False)


def get_session(
    cred: Optional[HTTPAuthorizationCredentials] = Depends(_scheme),
    sessions: SessionStore = Depends(get_session_store),
) -> Session:
    """The caller's session; anonymous when no bearer token is sent"""
    if cred is None:
        return ANONYMOUS
    try:
        return sessions.resolve(cred.credentials)
    except AuthError as e:
        logger.warning(f"Authentication failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_lecturer(session: Session = Depends(get_session)) -> Session:
    """Dependency admitting only lecturer sessions"""
    if not session.email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not session.is_privileged:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Lecturer access required",
        )
    return session
