"""
Credential store: registration, password / federated login and profiles.

Every path that authenticates someone ends in ``_issue`` so the token claims
are always built from the stored record. Store failures are re-classified by
``store_errors``; nothing here returns raw driver errors.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (DuplicateIdentity, Forbidden,
                                 InvalidCredentials, InvalidInput, NotFound)
from app.core.passwords import get_password_hash, verify_password
from app.core.permissions import SELF_SERVICE_KINDS
from app.core.security import (Clock, TokenService, ensure_utc,
                               generate_url_token, utc_now)
from app.db.errors import store_errors
from app.models.user import User, default_preferences
from app.services.notifications import Notifier, mask_phone

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PHONE_LENGTH = 10

# Profile fields a user can never change on their own
_PROTECTED_FIELDS = frozenset(
    {"id", "hashed_password", "account_kind", "role", "permissions", "status",
     "auth_provider", "created_at", "created_by", "username"}
)


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str
    message: str | None = None


# ── Validation helpers ──────────────────────────────────────────────
def normalise_email(email: str) -> str:
    email = email.strip().lower()
    if not _EMAIL_RE.match(email):
        raise InvalidInput("Invalid email format")
    return email


def normalise_phone(phone: str) -> str:
    phone = phone.strip()
    if len(phone) < MIN_PHONE_LENGTH:
        raise InvalidInput("Phone number must be at least 10 digits")
    return phone


def validate_self_service_kind(account_kind: str | None) -> str:
    if account_kind not in SELF_SERVICE_KINDS:
        raise InvalidInput("Invalid user type. Must be seller, buyer, or agent")
    return account_kind  # type: ignore[return-value]


def new_agent_profile(
    experience: int | str | None = None,
    specializations: list[str] | None = None,
    service_areas: list[str] | None = None,
) -> dict:
    try:
        years = int(experience) if experience is not None else 0
    except (TypeError, ValueError):
        years = 0
    return {
        "experience": max(years, 0),
        "specializations": list(specializations or []),
        "rating": 0,
        "review_count": 0,
        "about_me": "",
        "service_areas": list(service_areas or []),
    }


class CredentialStore:
    def __init__(
        self,
        db: AsyncSession,
        tokens: TokenService,
        notifier: Notifier,
        clock: Clock | None = None,
    ) -> None:
        self._db = db
        self._tokens = tokens
        self._notifier = notifier
        self._clock = clock or utc_now

    # ── Lookups ─────────────────────────────────────────────────────
    async def get_identity(self, user_id: int) -> User:
        async with store_errors(self._db):
            user = await self._db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def find_by_phone(self, phone: str) -> User | None:
        async with store_errors(self._db):
            result = await self._db.execute(select(User).where(User.phone == phone))
            return result.scalars().first()

    async def _exists(self, *conditions, exclude_id: int | None = None) -> bool:
        query = select(User.id).where(or_(*conditions))
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        result = await self._db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    # ── Side effects ────────────────────────────────────────────────
    def _issue(self, user: User, message: str | None = None) -> AuthResult:
        token = self._tokens.issue(user.id, user.account_kind, user.role)
        return AuthResult(user=user, token=token, message=message)

    async def _welcome(self, user: User) -> None:
        try:
            await self._notifier.send_welcome(user.id, user.name, user.account_kind)
        except Exception:
            logger.warning("Failed to send welcome notification to user %s", user.id, exc_info=True)

    async def _insert(self, user: User) -> User:
        async with store_errors(self._db):
            self._db.add(user)
            await self._db.commit()
            await self._db.refresh(user)
        return user

    # ── Registration ────────────────────────────────────────────────
    async def register(
        self,
        *,
        name: str | None,
        email: str | None,
        phone: str | None,
        password: str | None,
        account_kind: str | None,
        experience: int | str | None = None,
        specializations: list[str] | None = None,
        service_areas: list[str] | None = None,
    ) -> AuthResult:
        if not name or not password or not account_kind or not (email or phone):
            raise InvalidInput(
                "Missing required fields: name, password, userType and an email "
                "or phone number are required"
            )
        email = normalise_email(email) if email else None
        phone = normalise_phone(phone) if phone else None
        account_kind = validate_self_service_kind(account_kind)

        conditions = []
        if email:
            conditions.append(User.email == email)
        if phone:
            conditions.append(User.phone == phone)
        async with store_errors(self._db):
            if await self._exists(*conditions):
                raise DuplicateIdentity()

        now = self._clock()
        user = User(
            name=name,
            email=email,
            phone=phone,
            hashed_password=get_password_hash(password),
            account_kind=account_kind,
            auth_provider="password",
            preferences=default_preferences(),
            favorites=[],
            agent_profile=(
                new_agent_profile(experience, specializations, service_areas)
                if account_kind == "agent"
                else None
            ),
            email_verified=False,
            email_verification_token=generate_url_token() if email else None,
            email_verification_expiry=(
                now + timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS)
                if email
                else None
            ),
        )
        await self._insert(user)
        logger.info("Registered %s %s", account_kind, user.id)
        if email:
            self._log_verification_link(user)

        await self._welcome(user)
        return self._issue(
            user,
            "User registered successfully. Please check your email to verify your account."
            if email
            else "User registered successfully",
        )

    def _log_verification_link(self, user: User) -> None:
        # Stand-in for the verification email
        logger.debug(
            "Email verification link for user %s: %s",
            user.id,
            f"{settings.BASE_URL}{settings.API_V1_PREFIX}/auth/verify-email"
            f"?token={user.email_verification_token}",
        )

    # ── Password login ──────────────────────────────────────────────
    async def authenticate(
        self,
        *,
        password: str,
        email: str | None = None,
        phone: str | None = None,
        username: str | None = None,
        account_kind: str | None = None,
    ) -> AuthResult:
        if username:
            condition = User.username == username.strip().lower()
        elif email and phone:
            condition = or_(User.email == email.strip().lower(), User.phone == phone.strip())
        elif email:
            condition = User.email == email.strip().lower()
        elif phone:
            condition = User.phone == phone.strip()
        else:
            raise InvalidInput("Email, phone number, or username is required")

        if account_kind:
            condition = and_(condition, User.account_kind == account_kind)

        async with store_errors(self._db):
            result = await self._db.execute(select(User).where(condition).limit(1))
            user = result.scalars().first()

        # Same error for unknown account and wrong password
        if user is None or not verify_password(password, user.hashed_password):
            raise InvalidCredentials()
        if not user.is_active:
            raise Forbidden("Account is not active")

        first_login = user.is_first_login
        async with store_errors(self._db):
            user.last_login_at = self._clock()
            user.is_first_login = False
            await self._db.commit()
            await self._db.refresh(user)

        logger.info("User %s logged in", user.id)
        if first_login:
            return self._issue(user, "First login successful - please change your password")
        return self._issue(user, "Login successful")

    # ── Passwordless identities ─────────────────────────────────────
    async def login_by_phone(self, phone: str) -> AuthResult:
        """Sign in the owner of a proven phone number, creating a seller if new."""
        user = await self.find_by_phone(phone)
        created = user is None
        if user is None:
            user = await self._insert(
                User(
                    name=phone,
                    phone=phone,
                    account_kind="seller",
                    auth_provider="otp",
                    preferences=default_preferences(),
                    favorites=[],
                )
            )
            logger.info("Created seller %s from OTP login (%s)", user.id, mask_phone(phone))
            await self._welcome(user)
        elif not user.is_active:
            raise Forbidden("Account is not active")

        if not created:
            async with store_errors(self._db):
                user.last_login_at = self._clock()
                await self._db.commit()
                await self._db.refresh(user)
        return self._issue(user, "OTP verified successfully")

    async def federated_login(
        self,
        *,
        email: str | None,
        name: str | None,
        account_kind: str | None = "seller",
    ) -> AuthResult:
        if not email:
            raise InvalidInput("Invalid Google user data")
        email = normalise_email(email)
        account_kind = validate_self_service_kind(account_kind or "seller")

        async with store_errors(self._db):
            result = await self._db.execute(select(User).where(User.email == email))
            user = result.scalars().first()

        if user is None:
            user = await self._insert(
                User(
                    name=name or email.split("@")[0],
                    email=email,
                    account_kind=account_kind,
                    auth_provider="google",
                    email_verified=True,
                    preferences=default_preferences(),
                    favorites=[],
                    agent_profile=new_agent_profile() if account_kind == "agent" else None,
                )
            )
            logger.info("Created %s %s from Google sign-in", account_kind, user.id)
            await self._welcome(user)
        elif not user.is_active:
            raise Forbidden("Account is not active")
        else:
            async with store_errors(self._db):
                user.last_login_at = self._clock()
                await self._db.commit()
                await self._db.refresh(user)

        return self._issue(user, "Google authentication successful")

    # ── Profile ─────────────────────────────────────────────────────
    async def update_profile(self, user: User, changes: dict) -> User:
        changes = {k: v for k, v in changes.items() if k not in _PROTECTED_FIELDS}

        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise InvalidInput("Name must not be empty")
            changes["name"] = name
        if "email" in changes:
            changes["email"] = normalise_email(changes["email"])
        if "phone" in changes:
            changes["phone"] = normalise_phone(changes["phone"])

        async with store_errors(self._db):
            if "email" in changes and changes["email"] != user.email:
                if await self._exists(User.email == changes["email"], exclude_id=user.id):
                    raise DuplicateIdentity("User with this email already exists")
                user.email_verified = False
                user.email_verification_token = generate_url_token()
                user.email_verification_expiry = self._clock() + timedelta(
                    hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS
                )
            if "phone" in changes and changes["phone"] != user.phone:
                if await self._exists(User.phone == changes["phone"], exclude_id=user.id):
                    raise DuplicateIdentity("User with this phone already exists")

            for field, value in changes.items():
                setattr(user, field, value)
            await self._db.commit()
            await self._db.refresh(user)

        logger.info("Profile updated for user %s: %s", user.id, sorted(changes))
        return user

    # ── Email verification ──────────────────────────────────────────
    async def verify_email(self, token: str | None) -> User:
        if not token:
            raise InvalidInput("Verification token is required")
        async with store_errors(self._db):
            result = await self._db.execute(
                select(User).where(User.email_verification_token == token)
            )
            user = result.scalars().first()
            if user is None or user.email_verification_expiry is None:
                raise InvalidInput("Invalid or expired verification token")
            if ensure_utc(user.email_verification_expiry) <= self._clock():
                raise InvalidInput("Invalid or expired verification token")

            user.email_verified = True
            user.email_verification_token = None
            user.email_verification_expiry = None
            await self._db.commit()
            await self._db.refresh(user)
        logger.info("Email verified for user %s", user.id)
        return user

    async def resend_verification(self, user: User) -> User:
        if not user.email:
            raise InvalidInput("No email address on this account")
        if user.email_verified:
            raise InvalidInput("Email is already verified")
        async with store_errors(self._db):
            user.email_verification_token = generate_url_token()
            user.email_verification_expiry = self._clock() + timedelta(
                hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS
            )
            await self._db.commit()
            await self._db.refresh(user)
        self._log_verification_link(user)
        return user
