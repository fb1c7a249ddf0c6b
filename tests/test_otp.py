"""Tests for the phone OTP send / verify flow."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import Delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_sms_gateway
from app.core.config import settings
from app.core.security import ensure_utc
from app.main import app
from app.models.otp import OtpCode
from app.models.user import User
from app.services.credentials import CredentialStore
from app.services.otp import OtpChannel
from helpers import FailingSms

AUTH = "/api/v1/auth"
PHONE = "9876543210"


async def _codes(session_factory, phone: str = PHONE) -> list[OtpCode]:
    async with session_factory() as session:
        result = await session.execute(select(OtpCode).where(OtpCode.phone == phone))
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_send_stores_six_digit_code(async_client: AsyncClient, session_factory, sms):
    """POST /auth/send-otp should store one code valid for ten minutes."""
    resp = await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    assert resp.status_code == 200
    assert resp.json()["data"]["message"] == "OTP sent successfully"

    [record] = await _codes(session_factory)
    assert len(record.code) == 6 and record.code.isdigit()
    lifetime = ensure_utc(record.expires_at) - ensure_utc(record.created_at)
    assert lifetime == timedelta(minutes=10)
    assert sms.sent == [(PHONE, record.code)]


@pytest.mark.asyncio
async def test_code_is_not_echoed(async_client: AsyncClient, sms):
    resp = await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    assert sms.last_code(PHONE) not in resp.text


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"phone": ""}, {"phone": "   "}])
async def test_send_requires_phone(async_client: AsyncClient, payload):
    resp = await async_client.post(f"{AUTH}/send-otp", json=payload)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Phone number is required"


@pytest.mark.asyncio
async def test_verify_creates_seller(async_client: AsyncClient, session_factory, sms, notifier):
    await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})

    resp = await async_client.post(
        f"{AUTH}/verify-otp", json={"phone": PHONE, "otp": sms.last_code(PHONE)}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "OTP verified successfully"
    user = body["data"]["user"]
    assert user["phone"] == PHONE
    assert user["name"] == PHONE
    assert user["account_kind"] == "seller"
    assert notifier.welcomed == [(user["id"], PHONE, "seller")]
    assert await _codes(session_factory) == []


@pytest.mark.asyncio
async def test_wrong_code_rejected(async_client: AsyncClient, sms):
    await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    wrong = "000000" if sms.last_code(PHONE) != "000000" else "111111"

    resp = await async_client.post(f"{AUTH}/verify-otp", json={"phone": PHONE, "otp": wrong})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid or expired OTP"


@pytest.mark.asyncio
async def test_code_for_other_phone_rejected(async_client: AsyncClient, sms):
    await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    resp = await async_client.post(
        f"{AUTH}/verify-otp", json={"phone": "9876543211", "otp": sms.last_code(PHONE)}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_code_is_single_use(async_client: AsyncClient, sms):
    await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    code = sms.last_code(PHONE)

    first = await async_client.post(f"{AUTH}/verify-otp", json={"phone": PHONE, "otp": code})
    second = await async_client.post(f"{AUTH}/verify-otp", json={"phone": PHONE, "otp": code})
    assert first.status_code == 200
    assert second.status_code == 400


@pytest.mark.asyncio
async def test_new_code_supersedes_previous(async_client: AsyncClient, session_factory, monkeypatch):
    codes = iter(["111111", "222222"])
    monkeypatch.setattr("app.services.otp.generate_numeric_code", lambda length: next(codes))

    await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    assert [c.code for c in await _codes(session_factory)] == ["222222"]

    old = await async_client.post(f"{AUTH}/verify-otp", json={"phone": PHONE, "otp": "111111"})
    assert old.status_code == 400
    new = await async_client.post(f"{AUTH}/verify-otp", json={"phone": PHONE, "otp": "222222"})
    assert new.status_code == 200


@pytest.mark.asyncio
async def test_expired_code_rejected(async_client: AsyncClient, session_factory, sms):
    await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    async with session_factory() as session:
        await session.execute(
            update(OtpCode)
            .where(OtpCode.phone == PHONE)
            .values(expires_at=datetime.now(timezone.utc) - timedelta(seconds=1))
        )
        await session.commit()

    resp = await async_client.post(
        f"{AUTH}/verify-otp", json={"phone": PHONE, "otp": sms.last_code(PHONE)}
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid or expired OTP"


@pytest.mark.asyncio
async def test_verify_requires_phone_and_code(async_client: AsyncClient):
    resp = await async_client.post(f"{AUTH}/verify-otp", json={"phone": PHONE})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_existing_account_keeps_its_kind(
    async_client: AsyncClient, session_factory, make_account, sms, notifier
):
    agent, _ = await make_account("agent", phone=PHONE)
    await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})

    resp = await async_client.post(
        f"{AUTH}/verify-otp", json={"phone": PHONE, "otp": sms.last_code(PHONE)}
    )
    assert resp.status_code == 200
    user = resp.json()["data"]["user"]
    assert user["id"] == agent.id
    assert user["account_kind"] == "agent"
    assert notifier.welcomed == []

    async with session_factory() as session:
        stored = await session.get(User, agent.id)
    assert stored.last_login_at is not None


@pytest.mark.asyncio
async def test_suspended_account_blocked_after_otp(async_client: AsyncClient, make_account, sms):
    await make_account("seller", phone=PHONE, status="suspended")
    await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    resp = await async_client.post(
        f"{AUTH}/verify-otp", json={"phone": PHONE, "otp": sms.last_code(PHONE)}
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_demo_code_override(async_client: AsyncClient, sms, monkeypatch):
    monkeypatch.setattr(settings, "OTP_DEMO_CODE", "123456")
    await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    assert sms.last_code(PHONE) == "123456"

    resp = await async_client.post(f"{AUTH}/verify-otp", json={"phone": PHONE, "otp": "123456"})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_sms_failure_reported(async_client: AsyncClient):
    app.dependency_overrides[get_sms_gateway] = lambda: FailingSms()
    resp = await async_client.post(f"{AUTH}/send-otp", json={"phone": PHONE})
    assert resp.status_code == 503
    assert resp.json()["detail"] == "Failed to send OTP"


@pytest.mark.asyncio
async def test_one_row_per_phone_is_enforced(db_session):
    now = datetime.now(timezone.utc)
    db_session.add(OtpCode(phone=PHONE, code="111111", created_at=now, expires_at=now))
    db_session.add(OtpCode(phone=PHONE, code="222222", created_at=now, expires_at=now))
    with pytest.raises(IntegrityError):
        await db_session.commit()


@pytest.mark.asyncio
async def test_send_racing_another_send_still_supersedes(
    db_session, token_service, notifier, sms, monkeypatch
):
    """A code inserted between our delete and insert is replaced on retry."""
    now = datetime.now(timezone.utc)
    db_session.add(OtpCode(phone=PHONE, code="111111", created_at=now, expires_at=now))
    await db_session.commit()

    real_execute = AsyncSession.execute
    skipped = []

    async def _racy_execute(self, statement, *args, **kwargs):
        if isinstance(statement, Delete) and not skipped:
            skipped.append(statement)
            return None
        return await real_execute(self, statement, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "execute", _racy_execute)
    monkeypatch.setattr("app.services.otp.generate_numeric_code", lambda length: "222222")

    channel = OtpChannel(db_session, CredentialStore(db_session, token_service, notifier), sms)
    record = await channel.send(PHONE)

    assert skipped
    assert record.code == "222222"
    result = await db_session.execute(select(OtpCode.code).where(OtpCode.phone == PHONE))
    assert result.scalars().all() == ["222222"]
    assert sms.sent == [(PHONE, "222222")]
