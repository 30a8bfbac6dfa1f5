from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from rendezvous.core.config import settings


def create_access_token(subject: str | Any, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
        "sub": str(subject),
        "type": "access",
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str, token_type: str = "access") -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        if payload.get("type") != token_type:
            raise JWTError("Invalid token type")
        return payload
    except JWTError as exc:
        raise ValueError("Invalid token") from exc


def user_id_from_token(token: str) -> str:
    """Return the opaque user id carried in the token's ``sub`` claim."""
    payload = verify_token(token, token_type="access")
    user_id = payload.get("sub")
    if not user_id:
        raise ValueError("Invalid token: no subject")
    return str(user_id)
