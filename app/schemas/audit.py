from pydantic import BaseModel
from typing import Optional, Dict, Any
from uuid import UUID
from datetime import datetime

class CertificateAuditLogRead(BaseModel):
    id: UUID
    action: str
    certificate_key: Optional[UUID] = None
    certificate_id: Optional[str] = None
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    remarks: Optional[str] = None
    details: Dict[str, Any] = {}
    timestamp: datetime

    class Config:
        from_attributes = True
