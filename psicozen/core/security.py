"""Security utilities: access tokens and content hashing."""

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from pydantic import BaseModel

from .config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


# JWT Token handling
class TokenPayload(BaseModel):
    """JWT token payload."""

    sub: str  # User ID
    org: str | None = None  # Default organization ID
    exp: datetime
    iat: datetime
    type: str = "access"


def create_access_token(
    user_id: UUID,
    organization_id: UUID | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )

    payload = {
        "sub": str(user_id),
        "org": str(organization_id) if organization_id else None,
        "exp": expire,
        "iat": now,
        "type": "access",
    }

    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenPayload | None:
    """Decode and validate a JWT access token. Returns None when invalid."""
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.jwt_algorithm]
        )
        return TokenPayload(**payload)
    except jwt.ExpiredSignatureError:
        logger.debug("Access token expired")
        return None
    except jwt.InvalidTokenError:
        return None


# Content hashing for integrity
def hash_content(content: str) -> str:
    """Create SHA-256 hash of content for integrity verification."""
    return hashlib.sha256(content.encode()).hexdigest()

