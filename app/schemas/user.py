"""Pydantic schemas for registration, login and profiles.

Request models keep most fields optional: the credential store owns the
validation rules and reports them as ``InvalidInput``.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.core.permissions import role_info as describe_role


def _strip(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    return v or None


class RegisterRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    password: str | None = None
    user_type: str | None = Field(default=None, alias="userType")
    experience: int | str | None = None
    specializations: list[str] = []
    service_areas: list[str] = Field(default=[], alias="serviceAreas")

    model_config = {"populate_by_name": True}

    @field_validator("name", "email", "phone", "user_type")
    @classmethod
    def _strip_blank(cls, v: str | None) -> str | None:
        return _strip(v)


class LoginRequest(BaseModel):
    email: str | None = None
    phone: str | None = None
    username: str | None = None
    password: str = ""
    user_type: str | None = Field(default=None, alias="userType")

    model_config = {"populate_by_name": True}

    @field_validator("email", "phone", "username", "user_type")
    @classmethod
    def _strip_blank(cls, v: str | None) -> str | None:
        return _strip(v)


class GoogleProfile(BaseModel):
    email: str | None = None
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None

    def display_name(self) -> str:
        if self.name and self.name.strip():
            return self.name.strip()
        return f"{self.given_name or ''} {self.family_name or ''}".strip()


class GoogleAuthRequest(BaseModel):
    google_user: GoogleProfile | None = Field(default=None, alias="googleUser")
    user_type: str = Field(default="seller", alias="userType")

    model_config = {"populate_by_name": True}


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    preferences: dict | None = None
    favorites: list[str] | None = None
    agent_profile: dict | None = Field(default=None, alias="agentProfile")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class UserRead(BaseModel):
    id: int
    name: str
    email: str | None
    phone: str | None
    account_kind: str
    status: str
    email_verified: bool
    username: str | None = None
    role: str | None = None
    permissions: list[str] = []
    role_info: dict[str, str] | None = None
    is_first_login: bool = False
    preferences: dict | None = None
    favorites: list[str] = []
    agent_profile: dict | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_user(cls, user: object) -> "UserRead":
        read = cls.model_validate(user)
        if read.role is not None:
            read.role_info = describe_role(read.role)
        return read
