from datetime import datetime, timedelta, timezone
import uuid
from jose import jwt, JWTError
from jose.exceptions import ExpiredSignatureError
from typing import Optional, Dict
import logging

from ..config.settings import JWT_SECRET_KEY, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from ..core.errors import AuthError

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("sub", "exp", "iat", "jti")

# ────────────────────────────────────────────────────────────────────
#  Public API
# ────────────────────────────────────────────────────────────────────
def create_access_token(
    subject: str,
    extra_claims: Optional[Dict] = None,
    expires_delta: Optional[timedelta] = None,
    secret_key: str = JWT_SECRET_KEY,
) -> str:
    """
    Create a new JWT access token.

    Args:
        subject: The user's email
        extra_claims: Additional payload fields
        expires_delta: Optional custom expiration time

    Returns:
        str: The encoded JWT token
    """
    if not subject:
        raise ValueError("subject must be provided")

    now = datetime.now(timezone.utc)
    data = {"sub": subject, "jti": uuid.uuid4().hex}
    if extra_claims:
        data.update(extra_claims)

    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    data.update({"exp": expire, "iat": now})

    return jwt.encode(data, secret_key, algorithm=JWT_ALGORITHM)


def verify_token(token: str, secret_key: str = JWT_SECRET_KEY) -> Dict:
    """
    Verify and decode a JWT token.

    Args:
        token: The JWT token to verify

    Returns:
        Dict: The decoded token payload

    Raises:
        AuthError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("Token has expired")
    except JWTError as e:
        logger.warning(f"Token validation failed: {str(e)}")
        raise AuthError("Invalid token")

    # Validate required claims
    if not all(key in payload for key in REQUIRED_CLAIMS):
        raise AuthError("Token missing required claims")

    return payload
