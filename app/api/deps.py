# app/api/deps.py

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import Clock, utcnow
from app.core.database import AsyncSessionLocal
from app.core.exceptions import Unauthorized
from app.core.security import requester_from_token
from app.schemas.auth import Requester
from app.services.certificate_service import CertificateLifecycle
from app.services.certificate_store import CertificateStore
from app.services.verification_service import VerificationGateway


# ------------------------------------------------------------
# HTTP Bearer Authentication
# ------------------------------------------------------------
bearer_scheme = HTTPBearer(auto_error=True)


# ------------------------------------------------------------
# Persistence & collaborators (overridable in tests)
# ------------------------------------------------------------
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return AsyncSessionLocal


def get_clock() -> Clock:
    return utcnow


def get_certificate_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
) -> CertificateStore:
    return CertificateStore(session_factory, clock=clock)


def get_certificate_lifecycle(
    store: CertificateStore = Depends(get_certificate_store),
    clock: Clock = Depends(get_clock),
) -> CertificateLifecycle:
    return CertificateLifecycle(store, clock=clock)


def get_verification_gateway(
    store: CertificateStore = Depends(get_certificate_store),
) -> VerificationGateway:
    return VerificationGateway(store)


# ------------------------------------------------------------
# Requester from JWT
# ------------------------------------------------------------
async def get_current_requester(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Requester:
    try:
        return requester_from_token(credentials.credentials)
    except Unauthorized as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
