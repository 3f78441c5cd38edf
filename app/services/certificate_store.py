# app/services/certificate_store.py

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col, select

from app.core.clock import Clock, utcnow
from app.core.exceptions import DuplicateIdentifier, ValidationError
from app.models.certificate import Certificate
from app.services.identifier_service import IdentifierGenerator

DEFAULT_SORT = "-completion_date"

SORTABLE_FIELDS = {
    "completion_date",
    "created_at",
    "updated_at",
    "download_count",
    "course_name",
    "student_name",
}

# Anonymous callers must not be able to rank by download accounting
PUBLIC_SORTABLE_FIELDS = {"completion_date", "course_name", "student_name"}

REQUIRED_FIELDS = {
    "course_id",
    "student_id",
    "course_name",
    "student_name",
    "student_email",
    "completion_date",
    "issued_by",
}

# Everything except the key and the creation marker
UPDATABLE_FIELDS = set(Certificate.model_fields) - {"id", "created_at", "updated_at"}


class CertificateFilter(BaseModel):
    course_id: Optional[str] = None
    student_id: Optional[str] = None
    is_verified: Optional[bool] = None
    # None means "both active and inactive"
    is_active: Optional[bool] = True


def _as_uuid(key: Any) -> Optional[uuid.UUID]:
    if isinstance(key, uuid.UUID):
        return key
    try:
        return uuid.UUID(str(key))
    except ValueError:
        return None


def _is_unique_violation(exc: IntegrityError) -> bool:
    # postgres: "duplicate key value violates unique constraint"
    # sqlite:   "UNIQUE constraint failed: certificates.certificate_id"
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate" in message


class CertificateStore:
    """
    Persistence for certificates. Each call opens its own session, so every
    write is a single-row transaction and nothing is held across calls.

    Public lookups (certificate_id, verification_code, list) only see active
    rows; find_by_key is the admin path and sees everything.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        generator: Optional[IdentifierGenerator] = None,
        clock: Clock = utcnow,
    ):
        self.session_factory = session_factory
        self.generator = generator or IdentifierGenerator(clock=clock)
        self.clock = clock

    # ------------------------------------------------------------
    # CREATE
    # ------------------------------------------------------------
    async def create(self, data: Dict[str, Any]) -> Certificate:
        data = dict(data)

        missing = sorted(f for f in REQUIRED_FIELDS if data.get(f) is None)
        if missing:
            raise ValidationError(
                "Missing required certificate fields",
                errors={f: "Field required" for f in missing},
            )

        if not data.get("certificate_id"):
            data["certificate_id"] = self.generator.generate_certificate_id()
        if not data.get("verification_code"):
            data["verification_code"] = self.generator.generate_verification_code()

        now = self.clock()
        data.setdefault("created_at", now)
        data.setdefault("updated_at", now)

        certificate = Certificate(**data)

        async with self.session_factory() as session:
            session.add(certificate)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if _is_unique_violation(e):
                    raise DuplicateIdentifier(
                        f"certificate_id {data['certificate_id']} or its verification code already exists"
                    ) from e
                raise
            await session.refresh(certificate)

        return certificate

    # ------------------------------------------------------------
    # POINT LOOKUPS
    # ------------------------------------------------------------
    async def find_by_key(self, key: Any) -> Optional[Certificate]:
        key = _as_uuid(key)
        if key is None:
            return None
        async with self.session_factory() as session:
            return await session.get(Certificate, key)

    async def find_by_certificate_id(self, certificate_id: str) -> Optional[Certificate]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Certificate).where(
                    Certificate.certificate_id == certificate_id,
                    Certificate.is_active == True,
                )
            )
            return result.scalar_one_or_none()

    async def find_by_verification_code(self, code: str) -> Optional[Certificate]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Certificate).where(
                    Certificate.verification_code == code,
                    Certificate.is_active == True,
                )
            )
            return result.scalar_one_or_none()

    # ------------------------------------------------------------
    # LISTING
    # ------------------------------------------------------------
    def _conditions(self, filters: CertificateFilter) -> list:
        conditions = []
        if filters.is_active is not None:
            conditions.append(Certificate.is_active == filters.is_active)
        if filters.course_id:
            conditions.append(Certificate.course_id == filters.course_id)
        if filters.student_id:
            conditions.append(Certificate.student_id == filters.student_id)
        if filters.is_verified is not None:
            conditions.append(Certificate.is_verified == filters.is_verified)
        return conditions

    def _order_by(self, sort: str, sortable: Set[str] = SORTABLE_FIELDS) -> list:
        descending = sort.startswith("-")
        field = sort.lstrip("-+")
        if field not in sortable:
            raise ValidationError(
                "Invalid sort field",
                errors={"sort": f"Must be one of {sorted(sortable)}"},
            )
        column = col(getattr(Certificate, field))
        tiebreak = col(Certificate.created_at)
        if descending:
            return [column.desc(), tiebreak.desc()]
        return [column.asc(), tiebreak.asc()]

    async def list(
        self,
        filters: Optional[CertificateFilter] = None,
        page: int = 1,
        limit: int = 10,
        sort: str = DEFAULT_SORT,
        sortable: Set[str] = SORTABLE_FIELDS,
    ) -> Tuple[List[Certificate], int]:
        if page < 1 or limit < 1:
            raise ValidationError(
                "Invalid pagination",
                errors={"page" if page < 1 else "limit": "Must be at least 1"},
            )

        filters = filters or CertificateFilter()
        conditions = self._conditions(filters)
        order = self._order_by(sort, sortable)

        async with self.session_factory() as session:
            count_res = await session.execute(
                select(func.count()).select_from(Certificate).where(*conditions)
            )
            total = count_res.scalar_one()

            result = await session.execute(
                select(Certificate)
                .where(*conditions)
                .order_by(*order)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            items = list(result.scalars().all())

        return items, total

    # ------------------------------------------------------------
    # MUTATIONS
    # ------------------------------------------------------------
    async def update(self, key: Any, patch: Dict[str, Any]) -> Optional[Certificate]:
        key = _as_uuid(key)
        if key is None:
            return None

        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                "Unknown certificate fields",
                errors={f: "Field cannot be updated" for f in sorted(unknown)},
            )

        values = dict(patch)
        values["updated_at"] = self.clock()

        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    update(Certificate)
                    .where(Certificate.id == key)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    await session.rollback()
                    return None
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if _is_unique_violation(e):
                    raise DuplicateIdentifier(str(e.orig)) from e
                raise

            return await session.get(Certificate, key, populate_existing=True)

    async def deactivate(self, key: Any) -> Optional[Certificate]:
        return await self.update(key, {"is_active": False})

    async def increment_downloads(
        self, certificate_id: str, at: Optional[datetime] = None
    ) -> Optional[Certificate]:
        """
        One UPDATE statement: download_count = download_count + 1. The database
        serializes concurrent increments on the row, so none are lost.
        """
        at = at or self.clock()

        async with self.session_factory() as session:
            result = await session.execute(
                update(Certificate)
                .where(
                    Certificate.certificate_id == certificate_id,
                    Certificate.is_active == True,
                )
                .values(
                    download_count=Certificate.download_count + 1,
                    downloaded_at=at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                return None

            refreshed = await session.execute(
                select(Certificate).where(Certificate.certificate_id == certificate_id)
            )
            certificate = refreshed.scalar_one()
            await session.commit()

        return certificate
