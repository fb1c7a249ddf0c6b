"""
One-time login codes: at most one row per phone number (unique index).

Rows are never swept on expiry; verification compares ``expires_at`` with
the current time and treats stale rows as missing.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from app.db.base import Base


class OtpCode(Base):
    __tablename__ = "otp_codes"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    phone: str = Column(String(30), nullable=False, unique=True, index=True)  # type: ignore[assignment]
    code: str = Column(String(12), nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
