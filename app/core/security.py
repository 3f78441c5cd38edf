# app/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import jwt

from app.core.config import settings
from app.core.exceptions import Unauthorized
from app.schemas.auth import Requester

ALGORITHM = "HS256"


def create_access_token(
    subject: Union[str, Any],
    role: str,
    expires_delta: Optional[timedelta] = None,
    data: Optional[dict] = None
) -> str:
    """
    Signs a bearer token for a dashboard user. The certificate API never
    looks the user up: `id` and `role` in the token are all it trusts.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    claims = {
        "id": str(subject),
        "role": role,
        "exp": expire,
        "iat": now,
        "nbf": now,
    }
    if data:
        claims.update(data)

    return jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Raises jwt.InvalidTokenError (incl. ExpiredSignatureError) on a bad token."""
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[ALGORITHM],
        options={"verify_exp": True, "require": ["exp", "id", "role"]}
    )


def requester_from_token(token: str) -> Requester:
    try:
        claims = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Could not validate credentials")

    if not claims.get("id") or not claims.get("role"):
        raise Unauthorized("Invalid token payload")

    return Requester(id=str(claims["id"]), role=str(claims["role"]), name=claims.get("name"))
