"""Provider-scoped critical section for booking writes.

Checking for overlaps and inserting the appointment must happen as one
step per provider, otherwise two requests for the same time can both
pass the check. On PostgreSQL this takes a transaction-level advisory
lock, released when the surrounding transaction commits or rolls back.
Within a single process an ``asyncio.Lock`` per provider serialises
callers on any backend.
"""

import asyncio
import hashlib
import logging
import weakref
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Entries live only while some caller holds or waits on the lock
_local_locks: "weakref.WeakValueDictionary[tuple[int, str], asyncio.Lock]" = weakref.WeakValueDictionary()


def advisory_key(provider_id: UUID | str) -> int:
    """Stable signed 64-bit key for ``pg_advisory_xact_lock``."""
    digest = hashlib.sha256(f"booking:{provider_id}".encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def _local_lock(provider_id: UUID | str) -> asyncio.Lock:
    key = (id(asyncio.get_running_loop()), str(provider_id))
    lock = _local_locks.get(key)
    if lock is None:
        lock = _local_locks[key] = asyncio.Lock()
    return lock


@asynccontextmanager
async def provider_booking_lock(db: AsyncSession, provider_id: UUID | str):
    """Hold the provider's booking lock; commit before leaving the block."""
    lock = _local_lock(provider_id)
    async with lock:
        if db.get_bind().dialect.name == "postgresql":
            await db.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": advisory_key(provider_id)},
            )
            logger.debug("Advisory lock taken for provider %s", provider_id)
        yield
