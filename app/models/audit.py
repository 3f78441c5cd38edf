#app/models/audit.py

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON
from typing import Optional, Dict, Any
from uuid import UUID, uuid4
from datetime import datetime, timezone


class CertificateAuditLog(SQLModel, table=True):
    __tablename__ = "certificate_audit_logs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    certificate_key: Optional[UUID] = Field(default=None, index=True)
    certificate_id: Optional[str] = Field(default=None, index=True)

    # Who did it. Null for anonymous actions such as public downloads.
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None

    action: str = Field(index=True)
    remarks: Optional[str] = None

    # e.g. {"changed": ["grade", "is_verified"]}
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
