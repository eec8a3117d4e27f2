"""Bearer token verification.

The auth provider signs tokens with a shared secret; this service only checks
them and reads the ``sub`` claim as the profile id. Role claims are ignored:
roles live in ``user_roles``. ``create_access_token`` mints compatible tokens
for scripts and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings
from app.core.exceptions import AuthenticationError


def create_access_token(claims: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    issued_at = datetime.now(UTC)
    payload = {**claims, "iat": issued_at, "exp": issued_at + lifetime}
    if settings.jwt_audience:
        payload.setdefault("aud", settings.jwt_audience)
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """Check signature, expiry and (when configured) audience."""
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {e}")


def token_subject(token: str) -> UUID:
    """Profile id carried in the token's ``sub`` claim."""
    subject = decode_token(token).get("sub")
    if not subject:
        raise AuthenticationError("Token has no subject")
    try:
        return UUID(str(subject))
    except ValueError:
        raise AuthenticationError("Token subject is not a user id")
