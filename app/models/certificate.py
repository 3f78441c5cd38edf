from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Boolean, DateTime, Float, Integer, JSON, String, Text
import uuid
from datetime import datetime
from typing import List, Optional

from app.models.enums import CertificateState


class Certificate(SQLModel, table=True):
    __tablename__ = "certificates"

    # Internal key. Never leaves the admin API.
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # Public identifiers, e.g. TC-MGX3K2Q1-7HZ2A / 4KQ9ZT1M
    certificate_id: str = Field(
        sa_column=Column(String(50), nullable=False, unique=True, index=True)
    )
    verification_code: str = Field(
        sa_column=Column(String(16), nullable=False, unique=True, index=True)
    )

    course_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    student_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))

    # Snapshots taken at issuance
    course_name: str = Field(sa_column=Column(String(200), nullable=False))
    student_name: str = Field(sa_column=Column(String(100), nullable=False))
    student_email: str = Field(sa_column=Column(String(320), nullable=False, index=True))

    completion_date: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    issued_by: str = Field(sa_column=Column(String(200), nullable=False))
    template_url: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )

    # metadata.*
    grade: Optional[str] = Field(default=None, sa_column=Column(String(10), nullable=True))
    score: Optional[float] = Field(default=None, sa_column=Column(Float, nullable=True))
    duration_hours: Optional[float] = Field(
        default=None, sa_column=Column(Float, nullable=True)
    )
    skills: List[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )

    is_active: bool = Field(
        default=True, sa_column=Column(Boolean, nullable=False, default=True, index=True)
    )
    is_verified: bool = Field(
        default=False, sa_column=Column(Boolean, nullable=False, default=False)
    )

    download_count: int = Field(
        default=0, sa_column=Column(Integer, nullable=False, default=0)
    )
    downloaded_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))

    @property
    def state(self) -> CertificateState:
        return CertificateState.Active if self.is_active else CertificateState.Inactive
