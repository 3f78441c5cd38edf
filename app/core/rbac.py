# app/core/rbac.py

from fastapi import Depends, HTTPException, status

from app.api.deps import get_current_requester
from app.core.exceptions import Unauthorized
from app.schemas.auth import Requester

ADMIN_ROLES = {"admin", "super-admin"}


def normalize(role) -> str:
    return str(getattr(role, "value", role)).lower().strip()


def is_authorized_admin(requester: Requester | None) -> bool:
    return requester is not None and normalize(requester.role) in ADMIN_ROLES


def ensure_admin(requester: Requester | None) -> Requester:
    if not is_authorized_admin(requester):
        role = requester.role if requester else "anonymous"
        raise Unauthorized(f"Access denied for role '{role}'")
    return requester


async def require_admin(requester: Requester = Depends(get_current_requester)) -> Requester:
    try:
        return ensure_admin(requester)
    except Unauthorized as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
