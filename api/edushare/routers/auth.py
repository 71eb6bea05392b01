from fastapi import APIRouter, HTTPException, Depends, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Dict, Optional
import time
import logging

from ..config.settings import RATE_LIMIT_WINDOW, MAX_LOGIN_ATTEMPTS
from ..core.credentials import CredentialVerifier, Session, SessionStore
from ..core.dependencies import get_credential_verifier, get_session_store
from ..core.errors import AuthError
from ..core.security import get_session
from ..models.user import UserLogin, UserLoginResponse, SessionResponse

logger = logging.getLogger(__name__)

# Rate limiting with in-memory storage, per client address
login_attempts: Dict[str, Dict[float, int]] = {}

router = APIRouter(prefix="/api/auth", tags=["auth"])

bearer_scheme = HTTPBearer(auto_error=False)


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def check_rate_limit(request: Request) -> None:
    """Check if the client has exceeded rate limits"""
    client_ip = _client_ip(request)
    current_time = time.time()

    # Clean up old attempts, dropping clients with none left in the window
    for ip in list(login_attempts):
        recent = {
            timestamp: count for timestamp, count in login_attempts[ip].items()
            if current_time - timestamp < RATE_LIMIT_WINDOW
        }
        if recent:
            login_attempts[ip] = recent
        else:
            del login_attempts[ip]

    # Count recent attempts
    recent_attempts = sum(login_attempts.get(client_ip, {}).values())

    if recent_attempts >= MAX_LOGIN_ATTEMPTS:
        logger.warning(f"Login rate limit hit for {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later."
        )

    # Record this attempt
    attempts = login_attempts.setdefault(client_ip, {})
    attempts[current_time] = attempts.get(current_time, 0) + 1


def _session_response(session: Session) -> SessionResponse:
    return SessionResponse(email=session.email, isLecturer=session.is_privileged)


@router.post("/login", response_model=UserLoginResponse)
async def login(
    request: Request,
    login_data: UserLogin,
    verifier: CredentialVerifier = Depends(get_credential_verifier),
    sessions: SessionStore = Depends(get_session_store),
):
    """Sign the lecturer in and hand back a bearer token"""
    check_rate_limit(request)

    try:
        session = verifier.verify(login_data.email, login_data.password)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"}
        )

    # Clear rate limit on successful login
    login_attempts.pop(_client_ip(request), None)

    logger.info(f"Successful login for {session.email}")
    return UserLoginResponse(
        access_token=sessions.issue(session),
        token_type="bearer",
        user=_session_response(session),
    )


@router.post("/logout")
async def logout(
    cred: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    sessions: SessionStore = Depends(get_session_store),
):
    """Revoke the presented token; signing out twice is harmless"""
    if cred is None:
        return {"message": "Signed out"}

    try:
        sessions.revoke(cred.credentials)
    except AuthError as e:
        logger.info(f"Logout with an unusable token: {e}")

    return {"message": "Signed out"}


@router.get("/verify", response_model=SessionResponse)
async def verify(session: Session = Depends(get_session)):
    """Current session, anonymous when no token is sent"""
    return _session_response(session)
