"""Pydantic schemas for phone OTP login."""

from __future__ import annotations

from pydantic import BaseModel


class SendOtpRequest(BaseModel):
    phone: str | None = None


class VerifyOtpRequest(BaseModel):
    phone: str | None = None
    otp: str | None = None
