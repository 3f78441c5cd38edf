# app/services/certificate_service.py

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from app.core.clock import Clock, utcnow
from app.core.config import settings
from app.core.exceptions import (
    CertificateNotFound,
    DuplicateIdentifier,
    ImmutableField,
    PersistenceExhausted,
    ValidationError,
)
from app.models.certificate import Certificate
from app.schemas.certificate import (
    CertificateIssue,
    CertificateMetadata,
    CertificateUpdate,
    CourseSnapshot,
    StudentSnapshot,
    field_errors,
)
from app.services.certificate_store import DEFAULT_SORT, CertificateFilter, CertificateStore
from app.services.identifier_service import IdentifierGenerator

IMMUTABLE_FIELDS = ("certificate_id", "verification_code")

Snapshot = Union[Dict[str, Any], CourseSnapshot, StudentSnapshot]


def _dump(value):
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return value


class CertificateLifecycle:
    """
    The only writer of certificate state. Owns the rules the store does not
    know: default filling, collision retries, immutability of the public
    tokens and idempotent revocation.
    """

    def __init__(
        self,
        store: CertificateStore,
        generator: Optional[IdentifierGenerator] = None,
        clock: Clock = utcnow,
        max_attempts: int = settings.CERTIFICATE_ISSUE_ATTEMPTS,
        platform_name: str = settings.PLATFORM_NAME,
        default_template_url: str = settings.DEFAULT_TEMPLATE_URL,
    ):
        self.store = store
        self.generator = generator or IdentifierGenerator(clock=clock)
        self.clock = clock
        self.max_attempts = max_attempts
        self.platform_name = platform_name
        self.default_template_url = default_template_url

    # ============================================================
    # ISSUE
    # ============================================================
    async def issue(
        self,
        course_ref: str,
        student_ref: str,
        course_snapshot: Snapshot,
        student_snapshot: Snapshot,
        completion_date: Optional[datetime] = None,
        metadata: Optional[Union[Dict[str, Any], CertificateMetadata]] = None,
        issued_by: Optional[str] = None,
        template_url: Optional[str] = None,
    ) -> Certificate:
        try:
            request = CertificateIssue.model_validate({
                "course_id": course_ref,
                "student_id": student_ref,
                "course": _dump(course_snapshot),
                "student": _dump(student_snapshot),
                "completion_date": completion_date,
                "issued_by": issued_by,
                "template_url": template_url,
                "metadata": _dump(metadata),
            })
        except PydanticValidationError as e:
            raise ValidationError("Invalid certificate data", errors=field_errors(e)) from e

        meta = request.metadata or CertificateMetadata()
        data = {
            "course_id": request.course_id,
            "student_id": request.student_id,
            "course_name": request.course.title,
            "student_name": request.student.name,
            "student_email": request.student.email,
            "completion_date": request.completion_date or self.clock(),
            "issued_by": request.issued_by or self.platform_name,
            "template_url": request.template_url or self.default_template_url,
            "grade": meta.grade.value if meta.grade else None,
            "score": meta.score,
            "duration_hours": meta.duration_hours,
            "skills": meta.skills,
            "is_active": True,
            "is_verified": False,
            "download_count": 0,
        }

        for attempt in range(1, self.max_attempts + 1):
            certificate_id, verification_code = self.generator.generate_pair()
            try:
                certificate = await self.store.create({
                    **data,
                    "certificate_id": certificate_id,
                    "verification_code": verification_code,
                })
            except DuplicateIdentifier:
                logger.warning(
                    f"Identifier collision on attempt {attempt}/{self.max_attempts} "
                    f"({certificate_id}); regenerating"
                )
                continue

            logger.info(
                f"Issued certificate {certificate.certificate_id} "
                f"(course={certificate.course_id}, student={certificate.student_id})"
            )
            return certificate

        logger.error(f"Gave up issuing certificate after {self.max_attempts} collisions")
        raise PersistenceExhausted(self.max_attempts)

    # ============================================================
    # DOWNLOAD ACCOUNTING
    # ============================================================
    async def record_download(self, certificate_id: str) -> Certificate:
        certificate = await self.store.increment_downloads(certificate_id, self.clock())
        if not certificate:
            raise CertificateNotFound(f"Certificate {certificate_id} not found")
        return certificate

    # ============================================================
    # REVOKE (soft delete)
    # ============================================================
    async def revoke(self, key: Any) -> bool:
        """True if this call revoked the certificate, False if it already was."""
        certificate = await self.store.find_by_key(key)
        if not certificate:
            raise CertificateNotFound(f"Certificate {key} not found")

        if not certificate.is_active:
            logger.info(f"Certificate {certificate.certificate_id} already revoked")
            return False

        await self.store.deactivate(certificate.id)
        logger.info(f"Revoked certificate {certificate.certificate_id}")
        return True

    # ============================================================
    # ADMIN EDITS
    # ============================================================
    async def update(
        self, key: Any, patch: Union[Dict[str, Any], CertificateUpdate]
    ) -> Certificate:
        if isinstance(patch, CertificateUpdate):
            changes = patch
        else:
            try:
                changes = CertificateUpdate.model_validate(patch)
            except PydanticValidationError as e:
                raise ValidationError("Invalid certificate update", errors=field_errors(e)) from e

        current = await self.store.find_by_key(key)
        if not current:
            raise CertificateNotFound(f"Certificate {key} not found")

        values = changes.model_dump(exclude_unset=True)

        for field in IMMUTABLE_FIELDS:
            if field in values:
                if values[field] != getattr(current, field):
                    raise ImmutableField(field)
                values.pop(field)

        metadata = values.pop("metadata", None)
        if metadata:
            if "grade" in metadata and metadata["grade"] is not None:
                metadata["grade"] = metadata["grade"].value
            if metadata.get("skills") is None:
                metadata.pop("skills", None)
            values.update(metadata)

        if not values:
            return current

        if values.get("is_active") and not current.is_active:
            logger.info(f"Reactivating certificate {current.certificate_id}")

        updated = await self.store.update(current.id, values)
        if not updated:
            raise CertificateNotFound(f"Certificate {key} not found")
        return updated

    # ============================================================
    # READS (admin)
    # ============================================================
    async def get(self, key: Any) -> Certificate:
        certificate = await self.store.find_by_key(key)
        if not certificate:
            raise CertificateNotFound(f"Certificate {key} not found")
        return certificate

    async def list(
        self,
        filters: Optional[CertificateFilter] = None,
        page: int = 1,
        limit: int = 10,
        sort: str = DEFAULT_SORT,
    ) -> Tuple[List[Certificate], int]:
        return await self.store.list(filters, page=page, limit=limit, sort=sort)
