# app/api/endpoints/certificates.py

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import get_certificate_lifecycle, get_session_factory, get_verification_gateway
from app.core.exceptions import (
    CertificateNotFound,
    ImmutableField,
    PersistenceExhausted,
    ValidationError,
)
from app.core.rbac import require_admin
from app.models.enums import AuditAction
from app.schemas.auth import Requester
from app.schemas.certificate import (
    CertificateAdminRead,
    CertificateIssue,
    CertificatePage,
    CertificatePublic,
    CertificateUpdate,
    DownloadResult,
)
from app.services.audit_service import log_activity
from app.services.certificate_service import CertificateLifecycle
from app.services.certificate_store import DEFAULT_SORT, CertificateFilter
from app.services.identifier_service import normalize_token
from app.services.verification_service import VerificationGateway

router = APIRouter(
    prefix="/api/certificates",
    tags=["Certificates"]
)

NOT_FOUND = "Certificate not found"


def validation_error(e: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"message": e.message, "errors": e.errors},
    )


# ------------------------------------------------------------
# LIST (Public, redacted)
# ------------------------------------------------------------
@router.get("/", response_model=CertificatePage[CertificatePublic])
async def list_certificates(
    course: Optional[str] = Query(None, description="Filter by course id"),
    student: Optional[str] = Query(None, description="Filter by student id"),
    verified: Optional[bool] = Query(None, description="Filter by verification flag"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: str = Query(DEFAULT_SORT, description="Field name, '-' prefix for descending"),
    gateway: VerificationGateway = Depends(get_verification_gateway),
):
    try:
        items, total = await gateway.list_public(
            course_id=course,
            student_id=student,
            is_verified=verified,
            page=page,
            limit=limit,
            sort=sort,
        )
    except ValidationError as e:
        raise validation_error(e)

    return CertificatePage[CertificatePublic](items=items, total=total, page=page, limit=limit)


# ------------------------------------------------------------
# LIST (Admin, full records incl. revoked)
# ------------------------------------------------------------
@router.get("/admin", response_model=CertificatePage[CertificateAdminRead])
async def list_certificates_admin(
    course: Optional[str] = Query(None),
    student: Optional[str] = Query(None),
    verified: Optional[bool] = Query(None),
    state: Literal["active", "inactive", "all"] = Query("active"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: str = Query(DEFAULT_SORT),
    lifecycle: CertificateLifecycle = Depends(get_certificate_lifecycle),
    _: Requester = Depends(require_admin),
):
    filters = CertificateFilter(
        course_id=course,
        student_id=student,
        is_verified=verified,
        is_active={"active": True, "inactive": False, "all": None}[state],
    )
    try:
        items, total = await lifecycle.list(filters, page=page, limit=limit, sort=sort)
    except ValidationError as e:
        raise validation_error(e)

    return CertificatePage[CertificateAdminRead](
        items=[CertificateAdminRead.from_record(c) for c in items],
        total=total,
        page=page,
        limit=limit,
    )


# ------------------------------------------------------------
# GET BY INTERNAL KEY (Admin, sees revoked certificates)
# ------------------------------------------------------------
@router.get("/admin/{certificate_key}", response_model=CertificateAdminRead)
async def get_certificate_admin(
    certificate_key: UUID,
    lifecycle: CertificateLifecycle = Depends(get_certificate_lifecycle),
    _: Requester = Depends(require_admin),
):
    try:
        certificate = await lifecycle.get(certificate_key)
    except CertificateNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return CertificateAdminRead.from_record(certificate)


# ------------------------------------------------------------
# DOWNLOAD (Public, counted)
# ------------------------------------------------------------
@router.get("/{certificate_id}/download", response_model=DownloadResult)
async def download_certificate(
    certificate_id: str,
    background_tasks: BackgroundTasks,
    lifecycle: CertificateLifecycle = Depends(get_certificate_lifecycle),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    try:
        certificate = await lifecycle.record_download(normalize_token(certificate_id))
    except CertificateNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    background_tasks.add_task(
        log_activity,
        session_factory,
        AuditAction.Downloaded.value,
        certificate_key=certificate.id,
        certificate_id=certificate.certificate_id,
        details={"download_count": certificate.download_count},
    )

    return DownloadResult(
        certificate_id=certificate.certificate_id,
        course_name=certificate.course_name,
        student_name=certificate.student_name,
        completion_date=certificate.completion_date,
        template_url=certificate.template_url,
        download_count=certificate.download_count,
        downloaded_at=certificate.downloaded_at,
    )


# ------------------------------------------------------------
# ISSUE (Admin)
# ------------------------------------------------------------
@router.post("/", response_model=CertificateAdminRead, status_code=status.HTTP_201_CREATED)
async def issue_certificate(
    payload: CertificateIssue,
    background_tasks: BackgroundTasks,
    requester: Requester = Depends(require_admin),
    lifecycle: CertificateLifecycle = Depends(get_certificate_lifecycle),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    try:
        certificate = await lifecycle.issue(
            payload.course_id,
            payload.student_id,
            payload.course,
            payload.student,
            completion_date=payload.completion_date,
            metadata=payload.metadata,
            issued_by=payload.issued_by,
            template_url=payload.template_url,
        )
    except ValidationError as e:
        raise validation_error(e)
    except PersistenceExhausted as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    background_tasks.add_task(
        log_activity,
        session_factory,
        AuditAction.Issued.value,
        certificate_key=certificate.id,
        certificate_id=certificate.certificate_id,
        actor_id=requester.id,
        actor_role=requester.role,
        details={"course_id": certificate.course_id, "student_id": certificate.student_id},
    )

    return CertificateAdminRead.from_record(certificate)


# ------------------------------------------------------------
# UPDATE (Admin)
# ------------------------------------------------------------
@router.put("/{certificate_key}", response_model=CertificateAdminRead)
async def update_certificate(
    certificate_key: UUID,
    payload: CertificateUpdate,
    background_tasks: BackgroundTasks,
    requester: Requester = Depends(require_admin),
    lifecycle: CertificateLifecycle = Depends(get_certificate_lifecycle),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    try:
        certificate = await lifecycle.update(certificate_key, payload)
    except CertificateNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    except ImmutableField as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValidationError as e:
        raise validation_error(e)

    background_tasks.add_task(
        log_activity,
        session_factory,
        AuditAction.Updated.value,
        certificate_key=certificate.id,
        certificate_id=certificate.certificate_id,
        actor_id=requester.id,
        actor_role=requester.role,
        details={"changed": sorted(payload.model_fields_set)},
    )

    return CertificateAdminRead.from_record(certificate)


# ------------------------------------------------------------
# REVOKE (Admin, soft delete, idempotent)
# ------------------------------------------------------------
@router.delete("/{certificate_key}")
async def revoke_certificate(
    certificate_key: UUID,
    background_tasks: BackgroundTasks,
    requester: Requester = Depends(require_admin),
    lifecycle: CertificateLifecycle = Depends(get_certificate_lifecycle),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    try:
        changed = await lifecycle.revoke(certificate_key)
    except CertificateNotFound:
        raise HTTPException(status_code=404, detail=NOT_FOUND)

    # A repeated revoke is a no-op and leaves no audit row
    if changed:
        logger.info(f"Certificate {certificate_key} revoked by {requester.id}")
        background_tasks.add_task(
            log_activity,
            session_factory,
            AuditAction.Revoked.value,
            certificate_key=certificate_key,
            actor_id=requester.id,
            actor_role=requester.role,
        )

    return {"detail": "Certificate revoked successfully"}
