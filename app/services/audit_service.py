# app/services/audit_service.py

from typing import Any, Dict, List, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.models.audit import CertificateAuditLog


async def log_activity(
    session_factory: async_sessionmaker[AsyncSession],
    action: str,
    certificate_key: Optional[UUID] = None,
    certificate_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    actor_role: Optional[str] = None,
    remarks: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
):
    """
    Creates an audit log entry in a separate DB session.
    Safe for use in BackgroundTasks: a failed write is logged, never raised.
    """
    async with session_factory() as session:
        try:
            log_entry = CertificateAuditLog(
                certificate_key=certificate_key,
                certificate_id=certificate_id,
                actor_id=actor_id,
                actor_role=actor_role,
                action=action,
                remarks=remarks,
                details=details or {}
            )

            session.add(log_entry)
            await session.commit()

        except Exception as e:
            logger.error(f"AUDIT LOG ERROR ({action}): {e}")
            # Rollback to keep the connection pool healthy
            await session.rollback()


async def list_activity(
    session_factory: async_sessionmaker[AsyncSession],
    certificate_key: Optional[UUID] = None,
    action: Optional[str] = None,
    limit: int = 100,
) -> List[CertificateAuditLog]:
    query = select(CertificateAuditLog).order_by(CertificateAuditLog.timestamp.desc()).limit(limit)

    if certificate_key:
        query = query.where(CertificateAuditLog.certificate_key == certificate_key)
    if action:
        query = query.where(CertificateAuditLog.action == action)

    async with session_factory() as session:
        result = await session.execute(query)
        return list(result.scalars().all())
