"""
Credential verification and session storage.

Both sit behind small interfaces so the lecturer check can move from the
single configured account to a database or an external identity provider
without touching the routers.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional
import hmac
import logging
import time

from passlib.context import CryptContext

from ..auth.jwt_utils import create_access_token, verify_token
from ..config.settings import (
    ACCESS_TOKEN_EXPIRE_MINUTES, JWT_SECRET_KEY,
    LECTURER_EMAIL, LECTURER_PASSWORD, LECTURER_PASSWORD_HASH,
)
from .errors import AuthError

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

LECTURER_ROLE = "lecturer"


@dataclass(frozen=True)
class Session:
    email: Optional[str] = None
    is_privileged: bool = False


ANONYMOUS = Session()


class CredentialVerifier:
    def verify(self, email: str, password: str) -> Session:
        """Return the session for valid credentials, raise AuthError otherwise"""
        raise NotImplementedError


class StaticCredentialVerifier(CredentialVerifier):
    """Accepts exactly one configured lecturer account"""

    def __init__(
        self,
        email: str = LECTURER_EMAIL,
        password: Optional[str] = LECTURER_PASSWORD,
        password_hash: Optional[str] = LECTURER_PASSWORD_HASH,
    ):
        if not (password or password_hash):
            raise ValueError("A password or password hash is required")
        self.email = email.strip().lower()
        self.password_hash = password_hash or pwd_context.hash(password)

    def verify(self, email: str, password: str) -> Session:
        candidate = (email or "").strip().lower()
        email_ok = hmac.compare_digest(candidate.encode(), self.email.encode())
        password_ok = pwd_context.verify(password or "", self.password_hash)
        if not (email_ok and password_ok):
            logger.warning(f"Invalid credentials for {candidate or 'unknown'}")
            raise AuthError("Invalid email or password")
        return Session(email=self.email, is_privileged=True)


class SessionStore:
    def issue(self, session: Session) -> str:
        raise NotImplementedError

    def resolve(self, token: str) -> Session:
        raise NotImplementedError

    def revoke(self, token: str) -> None:
        raise NotImplementedError


class JWTSessionStore(SessionStore):
    """Sessions as signed JWTs; revoked token ids are remembered in memory"""

    def __init__(self, secret_key: str = JWT_SECRET_KEY, expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES):
        self.secret_key = secret_key
        self.expires = timedelta(minutes=expire_minutes)
        # jti -> exp of each revoked token
        self._revoked: Dict[str, int] = {}

    def issue(self, session: Session) -> str:
        if not session.email:
            raise ValueError("Only signed-in sessions can be issued")
        role = LECTURER_ROLE if session.is_privileged else "student"
        return create_access_token(
            subject=session.email,
            extra_claims={"role": role},
            expires_delta=self.expires,
            secret_key=self.secret_key,
        )

    def _prune_revoked(self) -> None:
        now = time.time()
        for jti in [jti for jti, exp in self._revoked.items() if exp <= now]:
            del self._revoked[jti]

    def resolve(self, token: str) -> Session:
        payload = verify_token(token, secret_key=self.secret_key)
        self._prune_revoked()
        if payload["jti"] in self._revoked:
            raise AuthError("Session has been signed out")
        return Session(email=payload["sub"], is_privileged=payload.get("role") == LECTURER_ROLE)

    def revoke(self, token: str) -> None:
        payload = verify_token(token, secret_key=self.secret_key)
        self._prune_revoked()
        self._revoked[payload["jti"]] = int(payload["exp"])
