"""
FastAPI dependencies: database session, collaborators and auth guards.

Protected routes declare one of the guards below in their signature;
handlers never decode tokens or compare roles themselves.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import Forbidden, TokenInvalid
from app.core.permissions import check_permission
from app.core.security import TokenClaims, TokenService
from app.db.errors import store_errors
from app.db.session import async_session_factory
from app.models.user import User
from app.services.credentials import CredentialStore
from app.services.notifications import (DatabaseNotifier, LoggingSmsGateway,
                                        Notifier, SmsGateway)
from app.services.otp import OtpChannel
from app.services.staff import StaffDirectory

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Collaborators ───────────────────────────────────────────────────
@lru_cache
def get_token_service() -> TokenService:
    return TokenService(settings.token_config())


def get_notifier() -> Notifier:
    return DatabaseNotifier(async_session_factory)


def get_sms_gateway() -> SmsGateway:
    return LoggingSmsGateway()


def get_credential_store(
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    notifier: Notifier = Depends(get_notifier),
) -> CredentialStore:
    return CredentialStore(db, tokens, notifier)


def get_otp_channel(
    db: AsyncSession = Depends(get_db),
    store: CredentialStore = Depends(get_credential_store),
    sms: SmsGateway = Depends(get_sms_gateway),
) -> OtpChannel:
    return OtpChannel(
        db,
        store,
        sms,
        ttl=timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
        code_length=settings.OTP_LENGTH,
        demo_code=settings.OTP_DEMO_CODE,
    )


def get_staff_directory(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> StaffDirectory:
    return StaffDirectory(db, notifier)


# ── Auth dependencies ───────────────────────────────────────────────
async def get_token_claims(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """Verify the bearer token and attach its claims to the request."""
    if not token:
        raise TokenInvalid("Not authenticated")
    claims = tokens.verify(token)
    request.state.claims = claims
    return claims


async def get_current_identity(
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Load the account behind the token and reject inactive ones."""
    async with store_errors(db):
        user = await db.get(User, claims.identity_id)
    if user is None:
        raise TokenInvalid()
    if not user.is_active:
        raise Forbidden("Account is not active")
    return user


def require_role(expected_kind: str, permission: str | None = None):
    """Allow *expected_kind* accounts, or staff whose role grants *permission*.

    Kind and role are read from the stored account rather than the token, so
    a demotion takes effect on the next request.
    """

    async def role_checker(
        current_user: User = Depends(get_current_identity),
    ) -> User:
        if current_user.account_kind == expected_kind:
            return current_user
        if (
            permission is not None
            and current_user.is_staff
            and check_permission(current_user, permission)
        ):
            return current_user
        raise Forbidden()

    return role_checker

