import pytest

from app.api.endpoints.verification import VERIFY_FAILED
from app.services.identifier_service import UNMATCHABLE_TOKEN
from app.services.verification_service import VerificationGateway

from conftest import NOW, naive

HIDDEN_FIELDS = {"id", "verification_code", "download_count", "downloaded_at", "student_email"}


# ------------------------------------------------------------------
# GATEWAY
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_verify_returns_redacted_view(issue, gateway):
    cert = await issue()

    result = await gateway.verify(cert.verification_code)

    assert result is not None
    assert result.verified is True
    assert result.course_name == "Applied AI Foundations"
    assert result.student_name == "Ada Lovelace"
    assert naive(result.completion_date) == naive(NOW)
    assert result.issued_by == "Techspert"

    dumped = result.model_dump()
    assert not HIDDEN_FIELDS & set(dumped)
    assert "certificate_id" not in dumped
    assert str(cert.id) not in str(dumped)
    assert cert.verification_code not in str(dumped)


@pytest.mark.asyncio
async def test_verify_normalizes_input(issue, gateway):
    cert = await issue()

    assert await gateway.verify(f"  {cert.verification_code.lower()} ") is not None


@pytest.mark.asyncio
async def test_verify_misses_are_none(issue, gateway, store):
    cert = await issue()

    assert await gateway.verify("ZZZZZZZZ") is None
    assert await gateway.verify("!!") is None
    assert await gateway.verify("") is None

    await store.deactivate(cert.id)
    assert await gateway.verify(cert.verification_code) is None
    # still there for the admin
    assert await store.find_by_key(cert.id) is not None


@pytest.mark.asyncio
async def test_fetch_public_by_id(issue, gateway, store):
    cert = await issue(metadata={"grade": "A", "skills": ["Python"]})

    view = await gateway.fetch_public_by_id(cert.certificate_id.lower())

    assert view.certificate_id == cert.certificate_id
    assert view.metadata.grade == "A"
    assert view.certificate_url == f"/api/certificates/{cert.certificate_id}/download"
    dumped = view.model_dump()
    assert not HIDDEN_FIELDS & set(dumped)
    assert cert.verification_code not in str(dumped)

    await store.deactivate(cert.id)
    assert await gateway.fetch_public_by_id(cert.certificate_id) is None


@pytest.mark.asyncio
async def test_list_public_excludes_revoked(issue, gateway, store):
    kept = await issue(student_ref="student-1")
    gone = await issue(student_ref="student-2")
    await store.deactivate(gone.id)

    items, total = await gateway.list_public(course_id="AI-101")

    assert total == 1
    assert [c.certificate_id for c in items] == [kept.certificate_id]


@pytest.mark.asyncio
async def test_malformed_tokens_are_looked_up_as_a_placeholder(store):
    seen = []

    class RecordingStore(type(store)):
        async def find_by_verification_code(self, code):
            seen.append(code)
            return await super().find_by_verification_code(code)

        async def find_by_certificate_id(self, certificate_id):
            seen.append(certificate_id)
            return await super().find_by_certificate_id(certificate_id)

    gateway = VerificationGateway(RecordingStore(store.session_factory, store.generator, store.clock))

    assert await gateway.verify("AB\x00CD12") is None
    assert await gateway.fetch_public_by_id("TC-\x00") is None
    assert await gateway.verify("\u00e9t\u00e9") is None

    assert seen == [UNMATCHABLE_TOKEN] * 3


# ------------------------------------------------------------------
# HTTP
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_verify_endpoint(client, issue, lifecycle):
    # issued straight through the lifecycle: same DB file as the client
    cert = await issue()

    res = await client.get(f"/api/certificates/verify/{cert.verification_code}")
    assert res.status_code == 200
    body = res.json()
    assert body["verified"] is True
    assert body["student_name"] == "Ada Lovelace"
    assert not HIDDEN_FIELDS & set(body)

    await lifecycle.revoke(cert.id)
    revoked = await client.get(f"/api/certificates/verify/{cert.verification_code}")
    unknown = await client.get("/api/certificates/verify/ZZZZZZZZ")
    malformed = await client.get("/api/certificates/verify/%21%21")

    for res in (revoked, unknown, malformed):
        assert res.status_code == 404
        assert res.json() == {"detail": VERIFY_FAILED}


@pytest.mark.asyncio
async def test_public_certificate_endpoint(client, issue):
    cert = await issue()

    res = await client.get(f"/api/certificates/cert/{cert.certificate_id}")
    assert res.status_code == 200
    body = res.json()
    assert body["certificate_id"] == cert.certificate_id
    assert not HIDDEN_FIELDS & set(body)

    missing = await client.get("/api/certificates/cert/TC-NOPE-00000")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_nul_byte_in_public_paths_is_a_plain_404(client, issue):
    await issue()

    verify = await client.get("/api/certificates/verify/%00")
    assert verify.status_code == 404
    assert verify.json() == {"detail": VERIFY_FAILED}

    assert (await client.get("/api/certificates/cert/%00")).status_code == 404
    assert (await client.get("/api/certificates/%00/download")).status_code == 404
    assert (await client.get("/api/certificates/TC-%00-AAAAA/download")).status_code == 404
