import hmac
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import Header
from jose import JWTError, jwt

from storefront.config import settings
from storefront.core.exceptions import UnauthorizedError


def create_access_token(user_id: str, username: str) -> str:
    """Create a JWT for a storefront user (type=user)."""
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.jwt_expire_hours)
    payload = {
        "sub": user_id,
        "name": username,
        "type": "user",
        "jti": str(uuid.uuid4()),
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Returns the payload."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")
    if payload.get("sub") is None:
        raise UnauthorizedError("Token missing subject")
    if payload.get("type") != "user":
        raise UnauthorizedError("Not a user token")
    return payload


def get_current_user_id(authorization: str = Header(None)) -> str:
    """FastAPI dependency that extracts the user_id from the Authorization header."""
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError("Authorization header must be: Bearer <token>")

    payload = decode_token(parts[1])
    return payload["sub"]


def require_protected_key(x_protected_key: str = Header(None)) -> None:
    """Guard for operator/cron endpoints. Open when no key is configured."""
    expected = settings.protected_api_key
    if not expected:
        return
    if not x_protected_key or not hmac.compare_digest(x_protected_key, expected):
        raise UnauthorizedError("Invalid or missing protected key")
