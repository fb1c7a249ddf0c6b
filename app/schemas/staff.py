"""Pydantic schemas for staff management.

No schema accepts a ``permissions`` input: permissions are
always derived from the role.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class StaffCreate(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    role: str = "admin"
    status: str = "active"
    password: str | None = None
    auto_generate_password: bool = Field(default=True, alias="autoGeneratePassword")

    model_config = {"populate_by_name": True}


class StaffUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    role: str | None = None
    status: str | None = None

    model_config = {"extra": "ignore"}


class StaffStatusUpdate(BaseModel):
    status: str | None = None


class StaffPasswordUpdate(BaseModel):
    new_password: str | None = Field(default=None, alias="newPassword")

    model_config = {"populate_by_name": True}


class StaffRead(BaseModel):
    id: int
    name: str
    email: str | None
    phone: str | None
    username: str | None
    role: str | None
    permissions: list[str]
    status: str
    is_first_login: bool
    last_login_at: datetime | None = None
    created_by: int | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class LoginCredentials(BaseModel):
    username: str
    password: str
    email: str
    role: str


class StaffCreated(BaseModel):
    id: int
    login_credentials: LoginCredentials


class RoleRead(BaseModel):
    id: str
    name: str
    description: str
    color: str
    permissions: list[str]
