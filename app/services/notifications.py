"""
Outbound messaging collaborators: in-app notifications and SMS.

Both are reached through small protocols so the API layer can swap the
implementation (tests inject recording or failing doubles).
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.notification import Notification

logger = logging.getLogger(__name__)


def mask_phone(phone: str) -> str:
    if len(phone) <= 4:
        return "*" * len(phone)
    return "*" * (len(phone) - 4) + phone[-4:]


class Notifier(Protocol):
    async def send_welcome(self, user_id: int, name: str, account_kind: str) -> None: ...

    async def send_staff_credentials(
        self, user_id: int, name: str, username: str, role: str
    ) -> None: ...


class SmsGateway(Protocol):
    async def send_code(self, phone: str, code: str) -> None: ...


_WELCOME_MESSAGES = {
    "seller": "Start posting your properties and reach thousands of buyers.",
    "agent": "Complete your agent profile to start receiving leads.",
    "buyer": "Browse verified listings and save your favourites.",
}


class DatabaseNotifier:
    """Writes notifications through its own session.

    A separate session keeps a failed notification from poisoning the
    caller's transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _store(self, user_id: int, kind: str, title: str, message: str) -> None:
        async with self._session_factory() as session:
            session.add(
                Notification(user_id=user_id, kind=kind, title=title, message=message)
            )
            await session.commit()

    async def send_welcome(self, user_id: int, name: str, account_kind: str) -> None:
        body = _WELCOME_MESSAGES.get(account_kind, "Your account is ready.")
        await self._store(user_id, "welcome", f"Welcome, {name}!", body)
        logger.info("Welcome notification stored for user %s", user_id)

    async def send_staff_credentials(
        self, user_id: int, name: str, username: str, role: str
    ) -> None:
        # The generated password is handed back to the creating admin only
        await self._store(
            user_id,
            "staff_credentials",
            "Staff account created",
            f"{name}, your {role} account is ready. Sign in as '{username}' "
            "and change your password on first login.",
        )
        logger.info("Credential notice stored for staff %s", user_id)


class LoggingSmsGateway:
    """Development gateway: records the dispatch in the log only."""

    async def send_code(self, phone: str, code: str) -> None:
        logger.info("OTP dispatched to %s", mask_phone(phone))
