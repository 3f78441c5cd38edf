# app/api/endpoints/logs.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from typing import List, Optional
from uuid import UUID

from app.api.deps import get_session_factory
from app.core.rbac import require_admin
from app.schemas.audit import CertificateAuditLogRead
from app.schemas.auth import Requester
from app.services.audit_service import list_activity

router = APIRouter(prefix="/api/admin", tags=["Audit & Logs"])


# -------------------------------------------------------------------
# VIEW CERTIFICATE AUDIT TRAIL (issue, edit, revoke, download)
# -------------------------------------------------------------------
@router.get("/certificate-logs", response_model=List[CertificateAuditLogRead])
async def get_certificate_logs(
    certificate_key: Optional[UUID] = Query(None, description="Filter by certificate"),
    action: Optional[str] = Query(None, description="Filter by action, e.g. CERTIFICATE_REVOKED"),
    limit: int = Query(100, ge=1, le=500),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    _: Requester = Depends(require_admin),
):
    return await list_activity(
        session_factory,
        certificate_key=certificate_key,
        action=action,
        limit=limit,
    )
