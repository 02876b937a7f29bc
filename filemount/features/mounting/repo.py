from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from .errors import RecordInvalidError
from .mount import Attachable

logger = logging.getLogger(__name__)


async def save_record(session: AsyncSession, record: Attachable) -> bool:
    """Validate and commit ``record``; return ``False`` without touching storage when invalid."""
    if not record.is_valid():
        logger.debug(
            "Not saving %s: %s",
            type(record).__name__,
            "; ".join(record.errors.full_messages),
        )
        return False

    session.add(record)
    try:
        await session.commit()
    except RecordInvalidError:
        await session.rollback()
        return False
    except Exception:
        await session.rollback()
        raise
    return True


async def save_record_or_raise(session: AsyncSession, record: Attachable) -> Attachable:
    if not await save_record(session, record):
        raise RecordInvalidError(record, record.errors.full_messages)
    return record


async def destroy_record(session: AsyncSession, record: Attachable) -> None:
    await session.delete(record)
    try:
        await session.commit()
    except Exception:
        await session.rollback()
        raise


async def reload_record(session: AsyncSession, record: Attachable) -> Attachable:
    await session.refresh(record)
    for state in record.attachments():
        state.reset()
    return record
