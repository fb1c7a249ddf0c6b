"""
Staff directory: back-office accounts and their roles.

``permissions`` is written only here and only as ``permissions_for(role)``;
callers can change a staff member's role but never their permission list.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateIdentity, InvalidInput, NotFound
from app.core.passwords import get_password_hash
from app.core.permissions import (STAFF_STATUSES, permissions_for,
                                  validate_role)
from app.core.security import generate_password
from app.db.errors import store_errors
from app.models.user import User
from app.services.credentials import normalise_email, normalise_phone
from app.services.notifications import Notifier

logger = logging.getLogger(__name__)

MIN_STAFF_PASSWORD_LENGTH = 6


def validate_status(status: str | None) -> str:
    if status not in STAFF_STATUSES:
        raise InvalidInput("Invalid status")
    return status  # type: ignore[return-value]


class StaffDirectory:
    def __init__(self, db: AsyncSession, notifier: Notifier) -> None:
        self._db = db
        self._notifier = notifier

    async def _get_staff(self, staff_id: int) -> User:
        user = await self._db.get(User, staff_id)
        if user is None or not (user.is_staff or user.account_kind == "admin"):
            raise NotFound("Staff member not found")
        return user

    async def _unique_username(self, base: str) -> str:
        candidate, suffix = base, 1
        while True:
            result = await self._db.execute(
                select(User.id).where(User.username == candidate).limit(1)
            )
            if result.scalar_one_or_none() is None:
                return candidate
            suffix += 1
            candidate = f"{base}{suffix}"

    async def list_staff(self, role: str | None = None, status: str | None = None) -> list[User]:
        query = select(User).where(
            or_(User.account_kind.in_(("admin", "staff")), User.role.is_not(None))
        )
        if role and role != "all":
            query = query.where(User.role == role)
        if status and status != "all":
            query = query.where(User.status == status)
        async with store_errors(self._db):
            result = await self._db.execute(query.order_by(User.created_at.desc(), User.id.desc()))
            return list(result.scalars().all())

    async def create_staff(
        self,
        *,
        name: str | None,
        email: str | None,
        phone: str | None = None,
        role: str = "admin",
        status: str = "active",
        password: str | None = None,
        auto_generate_password: bool = True,
        created_by: int | None = None,
    ) -> tuple[User, str]:
        """Create a staff account; returns the user and its initial password."""
        name = (name or "").strip()
        if not name or not email or not email.strip():
            raise InvalidInput("Name and email are required")
        email = normalise_email(email)
        phone = normalise_phone(phone) if phone and phone.strip() else None
        role = validate_role(role)
        status = validate_status(status)

        if auto_generate_password or not password:
            password = generate_password()
        elif len(password) < MIN_STAFF_PASSWORD_LENGTH:
            raise InvalidInput("Password must be at least 6 characters long")

        async with store_errors(self._db):
            conditions = [User.email == email]
            if phone:
                conditions.append(User.phone == phone)
            existing = await self._db.execute(select(User.id).where(or_(*conditions)).limit(1))
            if existing.scalar_one_or_none() is not None:
                raise DuplicateIdentity("User with this email already exists")

            username = await self._unique_username(email.split("@")[0])
            staff = User(
                name=name,
                email=email,
                phone=phone,
                username=username,
                hashed_password=get_password_hash(password),
                account_kind="staff",
                auth_provider="password",
                role=role,
                permissions=list(permissions_for(role)),
                status=status,
                is_first_login=True,
                email_verified=True,
                created_by=created_by,
                preferences={},
                favorites=[],
            )
            self._db.add(staff)
            await self._db.commit()
            await self._db.refresh(staff)

        logger.info("Staff %s created with role %s by %s", staff.id, role, created_by)
        try:
            await self._notifier.send_staff_credentials(staff.id, staff.name, username, role)
        except Exception:
            logger.warning("Failed to record credential notice for staff %s", staff.id, exc_info=True)
        return staff, password

    async def update_staff(self, staff_id: int, changes: dict) -> User:
        if "role" in changes:
            changes["role"] = validate_role(changes["role"])
        if "status" in changes:
            changes["status"] = validate_status(changes["status"])
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
            if not changes["name"]:
                raise InvalidInput("Name must not be empty")
        if "email" in changes:
            if not changes["email"] or not changes["email"].strip():
                raise InvalidInput("Email must not be empty")
            changes["email"] = normalise_email(changes["email"])
        if "phone" in changes:
            # Staff always keep an email, so a blank phone just clears it
            phone = (changes["phone"] or "").strip()
            changes["phone"] = normalise_phone(phone) if phone else None

        async with store_errors(self._db):
            staff = await self._get_staff(staff_id)
            if "email" in changes and changes["email"] != staff.email:
                taken = await self._db.execute(
                    select(User.id)
                    .where(User.email == changes["email"], User.id != staff.id)
                    .limit(1)
                )
                if taken.scalar_one_or_none() is not None:
                    raise DuplicateIdentity("User with this email already exists")

            for field, value in changes.items():
                setattr(staff, field, value)
            if "role" in changes:
                staff.permissions = list(permissions_for(staff.role))
            await self._db.commit()
            await self._db.refresh(staff)

        logger.info("Staff %s updated: %s", staff_id, sorted(changes))
        return staff

    async def delete_staff(self, staff_id: int) -> None:
        async with store_errors(self._db):
            staff = await self._get_staff(staff_id)
            await self._db.delete(staff)
            await self._db.commit()
        logger.info("Staff %s deleted", staff_id)

    async def set_status(self, staff_id: int, status: str | None) -> User:
        status = validate_status(status)
        async with store_errors(self._db):
            staff = await self._get_staff(staff_id)
            staff.status = status
            await self._db.commit()
            await self._db.refresh(staff)
        logger.info("Staff %s status set to %s", staff_id, status)
        return staff

    async def set_password(self, staff_id: int, new_password: str | None) -> None:
        if not new_password or len(new_password) < MIN_STAFF_PASSWORD_LENGTH:
            raise InvalidInput("Password must be at least 6 characters long")
        async with store_errors(self._db):
            staff = await self._get_staff(staff_id)
            staff.hashed_password = get_password_hash(new_password)
            await self._db.commit()
        logger.info("Password reset for staff %s", staff_id)
