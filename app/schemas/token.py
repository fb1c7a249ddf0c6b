"""Pydantic schemas for issued tokens."""

from __future__ import annotations

from pydantic import BaseModel

from app.schemas.user import UserRead


class AuthData(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserRead


class OAuth2Token(BaseModel):
    """Shape expected by the Swagger UI password flow."""

    access_token: str
    token_type: str = "bearer"
