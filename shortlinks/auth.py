"""Identity resolution at the HTTP boundary.

Credentials are HS256 JWTs carrying ``id`` and ``email`` claims, read from an
``Authorization: Bearer`` header or from the ``token`` cookie. Issuing tokens
belongs to the account service; ``create_access_token`` exists for operators
and tests.
"""

from datetime import datetime, timedelta, timezone

from fastapi import Request
from jose import JWTError, jwt

from shortlinks.config import Settings, get_settings
from shortlinks.schemas import Identity

__all__ = ["create_access_token", "decode_identity", "extract_token", "get_current_identity"]


def create_access_token(
    user_id: str | int,
    email: str | None = None,
    expires_delta: timedelta = timedelta(days=7),
    settings: Settings | None = None,
) -> str:
    settings = settings or get_settings()
    to_encode = {
        "id": str(user_id),
        "email": email,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_identity(token: str | None, settings: Settings | None = None) -> Identity | None:
    if not token:
        return None
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

    user_id = payload.get("id")
    if user_id is None or user_id == "":
        return None
    return Identity(id=str(user_id), email=payload.get("email"))


def extract_token(request: Request, cookie_name: str) -> str | None:
    authorization = request.headers.get("authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            return credentials.strip()
    return request.cookies.get(cookie_name)


async def get_current_identity(request: Request) -> Identity | None:
    """FastAPI dependency: the caller's identity, or None when unauthenticated."""
    settings = get_settings()
    return decode_identity(extract_token(request, settings.AUTH_COOKIE_NAME), settings)
