from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.deps import get_verification_gateway
from app.core.config import settings
from app.core.rate_limiter import limiter
from app.schemas.certificate import CertificatePublic, VerificationResult
from app.services.verification_service import VerificationGateway

router = APIRouter(prefix="/api/certificates", tags=["Verification"])

# One message for every miss: unknown, malformed, or revoked
VERIFY_FAILED = "Certificate not found or invalid verification code"


@router.get("/verify/{verification_code}", response_model=VerificationResult)
@limiter.limit(settings.VERIFY_RATE_LIMIT)
async def verify_certificate(
    request: Request,
    verification_code: str,
    gateway: VerificationGateway = Depends(get_verification_gateway),
):
    """
    Third-party trust check. Returns only what a verifier needs to see;
    never the internal key, the certificate id or download statistics.
    """
    result = await gateway.verify(verification_code)
    if not result:
        raise HTTPException(status_code=404, detail=VERIFY_FAILED)
    return result


@router.get("/cert/{certificate_id}", response_model=CertificatePublic)
async def get_certificate_by_id(
    certificate_id: str,
    gateway: VerificationGateway = Depends(get_verification_gateway),
):
    certificate = await gateway.fetch_public_by_id(certificate_id)
    if not certificate:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return certificate
