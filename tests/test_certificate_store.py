import asyncio
import uuid
from datetime import timedelta

import pytest

from app.core.exceptions import DuplicateIdentifier, ValidationError
from app.services.certificate_store import CertificateFilter

from conftest import NOW, naive


def record(**overrides):
    data = {
        "course_id": "AI-101",
        "student_id": "student-1",
        "course_name": "Applied AI Foundations",
        "student_name": "Ada Lovelace",
        "student_email": "ada@example.com",
        "completion_date": NOW,
        "issued_by": "Techspert",
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_create_fills_tokens_and_timestamps(store):
    cert = await store.create(record())

    assert store.generator.is_certificate_id(cert.certificate_id)
    assert store.generator.is_verification_code(cert.verification_code)
    assert isinstance(cert.id, uuid.UUID)
    assert naive(cert.created_at) == naive(NOW)
    assert cert.download_count == 0
    assert cert.is_active is True


@pytest.mark.asyncio
async def test_create_rejects_missing_required_fields(store):
    with pytest.raises(ValidationError) as exc:
        await store.create(record(student_email=None, course_name=None))

    assert set(exc.value.errors) == {"student_email", "course_name"}


@pytest.mark.asyncio
async def test_forced_certificate_id_collision(store):
    await store.create(record(certificate_id="TC-AAA-AAAAA", verification_code="AAAAAAAA"))

    with pytest.raises(DuplicateIdentifier):
        await store.create(record(certificate_id="TC-AAA-AAAAA", verification_code="BBBBBBBB"))


@pytest.mark.asyncio
async def test_forced_verification_code_collision(store):
    await store.create(record(certificate_id="TC-AAA-AAAAA", verification_code="AAAAAAAA"))

    with pytest.raises(DuplicateIdentifier):
        await store.create(record(certificate_id="TC-BBB-BBBBB", verification_code="AAAAAAAA"))


@pytest.mark.asyncio
async def test_public_lookups_skip_inactive_but_key_lookup_does_not(store):
    cert = await store.create(record())
    await store.deactivate(cert.id)

    assert await store.find_by_certificate_id(cert.certificate_id) is None
    assert await store.find_by_verification_code(cert.verification_code) is None

    by_key = await store.find_by_key(cert.id)
    assert by_key is not None
    assert by_key.is_active is False


@pytest.mark.asyncio
async def test_lookup_misses_return_none(store):
    assert await store.find_by_key(uuid.uuid4()) is None
    assert await store.find_by_key("not-a-uuid") is None
    assert await store.find_by_certificate_id("TC-NOPE-00000") is None
    assert await store.find_by_verification_code("ZZZZZZZZ") is None


@pytest.mark.asyncio
async def test_deactivate_only_flips_the_flag(store, clock):
    cert = await store.create(record(grade="A", score=91.5, skills=["Python"]))
    clock.tick(minutes=5)

    revoked = await store.deactivate(cert.id)

    assert revoked.is_active is False
    for field in ("certificate_id", "verification_code", "course_name", "student_email",
                  "grade", "score", "skills", "download_count"):
        assert getattr(revoked, field) == getattr(cert, field)
    assert naive(revoked.updated_at) == naive(clock())


@pytest.mark.asyncio
async def test_list_filters_pages_and_sorts(store):
    for i in range(5):
        await store.create(record(
            student_id=f"student-{i}",
            completion_date=NOW - timedelta(days=i),
        ))
    await store.create(record(course_id="WEB-200"))
    hidden = await store.create(record(student_id="student-x"))
    await store.deactivate(hidden.id)

    items, total = await store.list(CertificateFilter(course_id="AI-101"), page=1, limit=2)
    assert total == 5
    assert [c.student_id for c in items] == ["student-0", "student-1"]

    items, _ = await store.list(CertificateFilter(course_id="AI-101"), page=3, limit=2)
    assert [c.student_id for c in items] == ["student-4"]

    items, _ = await store.list(CertificateFilter(course_id="AI-101"), sort="completion_date", limit=10)
    assert items[0].student_id == "student-4"

    _, total_all = await store.list(CertificateFilter(is_active=None), limit=50)
    assert total_all == 7

    items, total_inactive = await store.list(CertificateFilter(is_active=False))
    assert total_inactive == 1
    assert items[0].id == hidden.id


@pytest.mark.asyncio
async def test_list_rejects_bad_sort_and_paging(store):
    with pytest.raises(ValidationError):
        await store.list(sort="verification_code")
    with pytest.raises(ValidationError):
        await store.list(page=0)


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields_and_misses(store):
    cert = await store.create(record())

    with pytest.raises(ValidationError):
        await store.update(cert.id, {"favourite_colour": "blue"})

    assert await store.update(uuid.uuid4(), {"is_verified": True}) is None


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(store, clock):
    cert = await store.create(record())

    results = await asyncio.gather(*[
        store.increment_downloads(cert.certificate_id, clock()) for _ in range(10)
    ])

    assert all(r is not None for r in results)
    assert sorted(r.download_count for r in results)[-1] == 10

    final = await store.find_by_key(cert.id)
    assert final.download_count == 10
    assert naive(final.downloaded_at) == naive(clock())


@pytest.mark.asyncio
async def test_increment_ignores_inactive_certificates(store):
    cert = await store.create(record())
    await store.deactivate(cert.id)

    assert await store.increment_downloads(cert.certificate_id) is None
    assert (await store.find_by_key(cert.id)).download_count == 0
