"""Staff bearer tokens and appointment capability tokens."""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from dentbook.core.config import settings

STAFF_ACTOR_TYPE = "staff"


def create_access_token(
    subject: str,
    actor_type: str = STAFF_ACTOR_TYPE,
    expires_delta: timedelta | None = None,
    additional_claims: dict | None = None,
) -> str:
    """Create a signed JWT for a staff member.

    Tokens are normally issued by the clinic's account system; this helper
    exists for operational scripts and tests that need a valid bearer token.

    Args:
        subject: Staff member identifier
        actor_type: Value for the ``actor_type`` claim
        expires_delta: Optional custom expiration time
        additional_claims: Optional additional claims to include

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": subject,
        "actor_type": actor_type,
        "type": "access",
        "exp": now + expires_delta,
        "iat": now,
    }
    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT, returning its claims or None if invalid."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None


def generate_confirmation_token() -> str:
    """Generate an unguessable token for the confirm/cancel links."""
    return secrets.token_urlsafe(32)


def token_fingerprint(token: str) -> str:
    """Short, non-reversible identifier for a token, safe to log."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]
