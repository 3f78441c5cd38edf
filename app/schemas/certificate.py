# app/schemas/certificate.py

from datetime import datetime
from math import ceil
from typing import Dict, Generic, List, Optional, TypeVar
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError as PydanticValidationError,
    computed_field,
    field_validator,
    model_validator,
)

from app.models.certificate import Certificate
from app.models.enums import CertificateState, Grade

CERTIFICATE_URL = "/api/certificates/{certificate_id}/download"
VERIFICATION_URL = "/api/certificates/verify/{verification_code}"


def field_errors(exc: PydanticValidationError) -> Dict[str, str]:
    """Flattens pydantic errors into {"metadata.score": "..."}."""
    errors = {}
    for err in exc.errors():
        path = ".".join(str(part) for part in err["loc"]) or "__root__"
        errors[path] = err["msg"]
    return errors


def _clean_skills(v):
    if v is None:
        return v
    return [s.strip() for s in v if s and s.strip()]


# ------------------------------------------------------------
# ISSUANCE INPUT (Admin)
# ------------------------------------------------------------
class CourseSnapshot(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)


class StudentSnapshot(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr

    @field_validator("email")
    def lowercase_email(cls, v):
        return v.lower()


class CertificateMetadata(BaseModel):
    grade: Optional[Grade] = None
    score: Optional[float] = Field(None, ge=0, le=100)
    duration_hours: Optional[float] = Field(None, ge=0)
    skills: List[str] = Field(default_factory=list)

    @field_validator("skills")
    def strip_skills(cls, v):
        return _clean_skills(v)

    @classmethod
    def from_record(cls, cert: Certificate) -> "CertificateMetadata":
        return cls(
            grade=cert.grade,
            score=cert.score,
            duration_hours=cert.duration_hours,
            skills=cert.skills or [],
        )


class CertificateIssue(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "course_id": "AI-101",
                "student_id": "64f1c2a9e4b0a1b2c3d4e5f6",
                "course": {"title": "Applied AI Foundations"},
                "student": {"name": "Ada Lovelace", "email": "ada@example.com"},
                "metadata": {"grade": "A", "score": 93, "duration_hours": 40, "skills": ["Python"]},
            }
        },
    )

    course_id: str = Field(..., min_length=1, max_length=64)
    student_id: str = Field(..., min_length=1, max_length=64)
    course: CourseSnapshot
    student: StudentSnapshot
    completion_date: Optional[datetime] = None
    issued_by: Optional[str] = Field(None, min_length=1, max_length=200)
    template_url: Optional[str] = None
    metadata: Optional[CertificateMetadata] = None


# ------------------------------------------------------------
# ADMIN PATCH
# ------------------------------------------------------------
class CertificateMetadataPatch(BaseModel):
    grade: Optional[Grade] = None
    score: Optional[float] = Field(None, ge=0, le=100)
    duration_hours: Optional[float] = Field(None, ge=0)
    skills: Optional[List[str]] = None

    @field_validator("skills")
    def strip_skills(cls, v):
        return _clean_skills(v)


NON_NULLABLE_PATCH_FIELDS = {
    "course_id", "student_id", "course_name", "student_name", "student_email",
    "completion_date", "issued_by", "is_active", "is_verified",
}


class CertificateUpdate(BaseModel):
    """
    Partial update. Only fields present in the payload are applied.
    certificate_id / verification_code are accepted here only so the
    lifecycle can reject them explicitly.
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    certificate_id: Optional[str] = None
    verification_code: Optional[str] = None

    course_id: Optional[str] = Field(None, min_length=1, max_length=64)
    student_id: Optional[str] = Field(None, min_length=1, max_length=64)
    course_name: Optional[str] = Field(None, min_length=1, max_length=200)
    student_name: Optional[str] = Field(None, min_length=1, max_length=100)
    student_email: Optional[EmailStr] = None
    completion_date: Optional[datetime] = None
    issued_by: Optional[str] = Field(None, min_length=1, max_length=200)
    template_url: Optional[str] = None
    metadata: Optional[CertificateMetadataPatch] = None

    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None

    @field_validator("student_email")
    def lowercase_email(cls, v):
        return v.lower() if v else v

    @model_validator(mode="after")
    def reject_null_required(self):
        for name in NON_NULLABLE_PATCH_FIELDS & self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"'{name}' cannot be null")
        return self


# ------------------------------------------------------------
# READ MODELS
# ------------------------------------------------------------
class CertificatePublic(BaseModel):
    """Redacted view: no internal key, no verification code, no accounting."""
    certificate_id: str
    course_name: str
    student_name: str
    completion_date: datetime
    issued_by: str
    is_verified: bool
    template_url: Optional[str] = None
    metadata: CertificateMetadata

    @computed_field
    @property
    def certificate_url(self) -> str:
        return CERTIFICATE_URL.format(certificate_id=self.certificate_id)

    @classmethod
    def from_record(cls, cert: Certificate) -> "CertificatePublic":
        return cls(
            certificate_id=cert.certificate_id,
            course_name=cert.course_name,
            student_name=cert.student_name,
            completion_date=cert.completion_date,
            issued_by=cert.issued_by,
            is_verified=cert.is_verified,
            template_url=cert.template_url,
            metadata=CertificateMetadata.from_record(cert),
        )


class CertificateAdminRead(CertificatePublic):
    id: UUID
    verification_code: str
    course_id: str
    student_id: str
    student_email: str
    is_active: bool
    state: CertificateState
    download_count: int
    downloaded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def verification_url(self) -> str:
        return VERIFICATION_URL.format(verification_code=self.verification_code)

    @classmethod
    def from_record(cls, cert: Certificate) -> "CertificateAdminRead":
        return cls(
            id=cert.id,
            certificate_id=cert.certificate_id,
            verification_code=cert.verification_code,
            course_id=cert.course_id,
            student_id=cert.student_id,
            course_name=cert.course_name,
            student_name=cert.student_name,
            student_email=cert.student_email,
            completion_date=cert.completion_date,
            issued_by=cert.issued_by,
            is_verified=cert.is_verified,
            is_active=cert.is_active,
            state=cert.state,
            template_url=cert.template_url,
            metadata=CertificateMetadata.from_record(cert),
            download_count=cert.download_count,
            downloaded_at=cert.downloaded_at,
            created_at=cert.created_at,
            updated_at=cert.updated_at,
        )


class VerificationResult(BaseModel):
    verified: bool = True
    message: str = "Certificate verified successfully"
    course_name: str
    student_name: str
    completion_date: datetime
    issued_by: str
    is_verified: bool


class DownloadResult(BaseModel):
    message: str = "Certificate download initiated"
    certificate_id: str
    course_name: str
    student_name: str
    completion_date: datetime
    template_url: Optional[str] = None
    download_count: int
    downloaded_at: Optional[datetime] = None


T = TypeVar("T")


class CertificatePage(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int

    @computed_field
    @property
    def pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0
