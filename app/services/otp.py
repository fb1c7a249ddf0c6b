"""
Phone OTP channel.

A code moves from *created* to exactly one terminal state: consumed by a
successful verification, superseded by a newer code for the same phone, or
expired. Expiry is checked lazily at verification time.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (DeliveryFailed, InvalidInput, OtpInvalidOrExpired,
                                 StoreUnavailable)
from app.core.security import Clock, ensure_utc, generate_numeric_code, utc_now
from app.db.errors import store_errors
from app.models.otp import OtpCode
from app.services.credentials import AuthResult, CredentialStore
from app.services.notifications import SmsGateway, mask_phone

logger = logging.getLogger(__name__)


class OtpChannel:
    def __init__(
        self,
        db: AsyncSession,
        store: CredentialStore,
        sms: SmsGateway,
        *,
        ttl: timedelta = timedelta(minutes=10),
        code_length: int = 6,
        demo_code: str | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._db = db
        self._store = store
        self._sms = sms
        self._ttl = ttl
        self._code_length = code_length
        self._demo_code = demo_code
        self._clock = clock or utc_now

    def _new_code(self) -> str:
        if self._demo_code:
            return self._demo_code
        return generate_numeric_code(self._code_length)

    async def _replace_code(self, phone: str, code: str) -> OtpCode:
        """Supersede whatever was issued before with *code*.

        A concurrent send for the same phone can win the unique index between
        our delete and insert; the insert is retried once so the later request
        still replaces it.
        """
        for attempt in range(2):
            now = self._clock()
            await self._db.execute(delete(OtpCode).where(OtpCode.phone == phone))
            record = OtpCode(phone=phone, code=code, created_at=now, expires_at=now + self._ttl)
            self._db.add(record)
            try:
                await self._db.commit()
            except IntegrityError:
                await self._db.rollback()
                if attempt:
                    raise StoreUnavailable()
                logger.info("Concurrent OTP send for %s, retrying", mask_phone(phone))
                continue
            await self._db.refresh(record)
            return record
        raise StoreUnavailable()

    async def send(self, phone: str | None) -> OtpCode:
        phone = (phone or "").strip()
        if not phone:
            raise InvalidInput("Phone number is required")

        code = self._new_code()
        async with store_errors(self._db):
            record = await self._replace_code(phone, code)

        try:
            await self._sms.send_code(phone, code)
        except Exception as exc:
            logger.error("SMS delivery to %s failed: %s", mask_phone(phone), exc)
            raise DeliveryFailed("Failed to send OTP") from exc

        if self._demo_code:
            logger.debug("Demo OTP for %s: %s", mask_phone(phone), code)
        logger.info("OTP issued for %s", mask_phone(phone))
        return record

    async def verify(self, phone: str | None, code: str | None) -> AuthResult:
        phone = (phone or "").strip()
        code = (code or "").strip()
        if not phone or not code:
            raise InvalidInput("Phone number and OTP are required")

        async with store_errors(self._db):
            result = await self._db.execute(
                select(OtpCode).where(OtpCode.phone == phone, OtpCode.code == code)
            )
            record = result.scalars().first()
            if record is None or ensure_utc(record.expires_at) <= self._clock():
                raise OtpInvalidOrExpired()

            # The conditional delete is the consumption: only one caller can win it
            consumed = await self._db.execute(delete(OtpCode).where(OtpCode.id == record.id))
            await self._db.commit()
            if consumed.rowcount != 1:
                raise OtpInvalidOrExpired()

        logger.info("OTP verified for %s", mask_phone(phone))
        return await self._store.login_by_phone(phone)
