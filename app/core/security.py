"""
JWT session tokens (python-jose) and one-time secrets.

``TokenService`` is built from an explicit ``TokenConfig`` so the signing key
never lives in module state; the API layer constructs one from settings and
tests can construct their own with a different secret or a frozen clock.
"""

from __future__ import annotations

import secrets
import string
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from app.core.exceptions import TokenExpired, TokenInvalid
from app.core.permissions import ACCOUNT_KINDS

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalise a naive timestamp (SQLite drops tzinfo) to UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class TokenConfig:
    secret_key: str
    algorithm: str = "HS256"
    ttl: timedelta = timedelta(days=7)


class TokenClaims(BaseModel):
    """Decoded payload of a session token."""

    identity_id: int
    account_kind: str
    role: str | None = None
    issued_at: datetime
    expires_at: datetime


# ── JWT tokens ──────────────────────────────────────────────────────
class TokenService:
    def __init__(self, config: TokenConfig, clock: Clock | None = None) -> None:
        if not config.secret_key:
            raise ValueError("TokenConfig.secret_key must not be empty")
        self._config = config
        self._clock = clock or utc_now

    @property
    def ttl(self) -> timedelta:
        return self._config.ttl

    def issue(self, identity_id: int, account_kind: str, role: str | None = None) -> str:
        issued = int(self._clock().timestamp())
        payload = {
            "sub": str(identity_id),
            "kind": account_kind,
            "role": role,
            "iat": issued,
            "exp": issued + int(self._config.ttl.total_seconds()),
            "type": "access",
        }
        return jwt.encode(payload, self._config.secret_key, algorithm=self._config.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Return the claims of a valid token.

        Expiry is compared here rather than inside ``jwt.decode`` so the
        boundary is exact: a token is rejected at ``exp`` itself, not one
        second later.
        """
        try:
            payload = jwt.decode(
                token,
                self._config.secret_key,
                algorithms=[self._config.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as exc:
            raise TokenInvalid() from exc

        if payload.get("type") != "access" or payload.get("kind") not in ACCOUNT_KINDS:
            raise TokenInvalid()

        try:
            claims = TokenClaims(
                identity_id=int(payload["sub"]),
                account_kind=payload["kind"],
                role=payload.get("role"),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise TokenInvalid() from exc

        if self._clock() >= claims.expires_at:
            raise TokenExpired()
        return claims


# ── One-time secrets ────────────────────────────────────────────────
def generate_numeric_code(length: int = 6) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


_PASSWORD_ALPHABET = string.ascii_letters + string.digits + "@#$&"


def generate_password(length: int = 12) -> str:
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def generate_url_token() -> str:
    return secrets.token_hex(32)
