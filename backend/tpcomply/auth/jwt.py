"""JWT session token creation and validation."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from tpcomply.config import settings

ALGORITHM = "HS256"


def create_access_token(user_id: str, email: str, expires_minutes: int | None = None) -> str:
    """Create a short-lived access token. Role and firm are never trusted from claims."""
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {
        "sub": str(user_id),
        "email": email,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and validate an access token. Raises JWTError on failure."""
    payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    return payload
