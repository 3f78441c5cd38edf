# app/services/verification_service.py

from typing import List, Optional, Tuple

from app.schemas.certificate import CertificatePublic, VerificationResult
from app.services.certificate_store import (
    DEFAULT_SORT,
    PUBLIC_SORTABLE_FIELDS,
    CertificateFilter,
    CertificateStore,
)
from app.services.identifier_service import normalize_token


class VerificationGateway:
    """
    Read-only, anonymous access to certificates.

    A miss is always None. Malformed input is not short-circuited: it goes
    through the same lookup as a well-formed unknown token, so neither the
    response nor its timing reveals which case occurred.
    """

    def __init__(self, store: CertificateStore):
        self.store = store

    async def verify(self, code: str) -> Optional[VerificationResult]:
        certificate = await self.store.find_by_verification_code(normalize_token(code))
        if not certificate:
            return None

        return VerificationResult(
            course_name=certificate.course_name,
            student_name=certificate.student_name,
            completion_date=certificate.completion_date,
            issued_by=certificate.issued_by,
            is_verified=certificate.is_verified,
        )

    async def fetch_public_by_id(self, certificate_id: str) -> Optional[CertificatePublic]:
        certificate = await self.store.find_by_certificate_id(normalize_token(certificate_id))
        if not certificate:
            return None
        return CertificatePublic.from_record(certificate)

    async def list_public(
        self,
        course_id: Optional[str] = None,
        student_id: Optional[str] = None,
        is_verified: Optional[bool] = None,
        page: int = 1,
        limit: int = 10,
        sort: str = DEFAULT_SORT,
    ) -> Tuple[List[CertificatePublic], int]:
        filters = CertificateFilter(
            course_id=course_id,
            student_id=student_id,
            is_verified=is_verified,
            is_active=True,
        )
        items, total = await self.store.list(
            filters, page=page, limit=limit, sort=sort, sortable=PUBLIC_SORTABLE_FIELDS
        )
        return [CertificatePublic.from_record(c) for c in items], total
