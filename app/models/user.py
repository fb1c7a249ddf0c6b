"""
User model: buyers, sellers, agents, admins and staff share one table.

Staff rows additionally carry ``role`` and the ``permissions`` derived from it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (JSON, Boolean, CheckConstraint, Column, DateTime,
                        Integer, String)

from app.db.base import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_preferences() -> dict:
    return {
        "property_types": [],
        "price_range": {"min": 0, "max": 10_000_000},
        "locations": [],
    }


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "email IS NOT NULL OR phone IS NOT NULL",
            name="ck_users_email_or_phone",
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    # NULL rather than "" when absent, so the unique indexes stay sparse
    email: str | None = Column(String(320), unique=True, nullable=True, index=True)  # type: ignore[assignment]
    phone: str | None = Column(String(30), unique=True, nullable=True, index=True)  # type: ignore[assignment]
    username: str | None = Column(String(100), unique=True, nullable=True, index=True)  # type: ignore[assignment]
    hashed_password: str | None = Column(String(128), nullable=True)  # type: ignore[assignment]

    account_kind: str = Column(String(20), nullable=False, default="buyer")  # type: ignore[assignment]
    # buyer | seller | agent | admin | staff
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="active",
        server_default="active",
    )  # active | inactive | suspended
    auth_provider: str = Column(String(20), nullable=False, default="password")  # type: ignore[assignment]
    # password | otp | google

    # Staff only
    role: str | None = Column(String(40), nullable=True)  # type: ignore[assignment]
    permissions: list[str] = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    is_first_login: bool = Column(Boolean, default=False, nullable=False)  # type: ignore[assignment]
    created_by: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]

    preferences: dict = Column(JSON, nullable=False, default=default_preferences)  # type: ignore[assignment]
    favorites: list[str] = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    agent_profile: dict | None = Column(JSON, nullable=True)  # type: ignore[assignment]

    email_verified: bool = Column(Boolean, default=False, nullable=False)  # type: ignore[assignment]
    email_verification_token: str | None = Column(String(64), nullable=True, index=True)  # type: ignore[assignment]
    email_verification_expiry: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    last_login_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=_utc_now,
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=_utc_now,
        onupdate=_utc_now,
    )

    @property
    def is_staff(self) -> bool:
        return self.account_kind == "staff"

    @property
    def is_active(self) -> bool:
        return self.status == "active"
