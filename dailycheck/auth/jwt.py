"""Bearer token verification against the identity provider's signing secret."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from dailycheck.config import get_settings

settings = get_settings()


def verify_token(token: str) -> Optional[dict]:
    """Verify and decode a JWT token issued by the identity provider"""
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError:
        return None


def create_access_token(
    user_id: UUID,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a token shaped like the identity provider's (local tooling and tests)"""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=1))

    to_encode = {
        "sub": str(user_id),
        "email": email,
        "role": "authenticated",
        "exp": expire,
        "iat": now,
    }
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience

    return jwt.encode(
        to_encode,
        settings.supabase_jwt_secret,
        algorithm=settings.jwt_algorithm
    )
