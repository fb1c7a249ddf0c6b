"""
Re-classification of driver / ORM failures into the service error taxonomy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateIdentity, StoreUnavailable

logger = logging.getLogger(__name__)


@asynccontextmanager
async def store_errors(session: AsyncSession) -> AsyncIterator[None]:
    """Roll back and raise ``DuplicateIdentity`` / ``StoreUnavailable`` on store failures.

    Service errors raised inside the block pass through untouched.
    """
    try:
        yield
    except IntegrityError as exc:
        await session.rollback()
        logger.info("Uniqueness violation: %s", exc.orig)
        raise DuplicateIdentity() from exc
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
        logger.error("Credential store failure: %s", exc, exc_info=True)
        try:
            await session.rollback()
        except (SQLAlchemyError, OSError):
            logger.warning("Rollback after store failure also failed")
        raise StoreUnavailable() from exc
