"""
Per-user mutual exclusion for subscription writes.

`user_scope` serializes every mutating billing flow of one user:

- an in-process asyncio.Lock (requests handled by this worker), and
- SELECT ... FOR UPDATE on the user row (requests handled by other workers).

The surrounding transaction is committed before the scope is released, so the
next waiter always sees the previous flow's result. The partial unique index on
subscriptions stays as the storage-level backstop: an IntegrityError raised
inside the scope surfaces as ConflictError.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.database.models.user import User

logger = logging.getLogger(__name__)

_locks: Dict[int, asyncio.Lock] = {}
_holders: Dict[int, int] = {}


def _acquire_slot(user_id: int) -> asyncio.Lock:
    lock = _locks.get(user_id)
    if lock is None:
        lock = _locks[user_id] = asyncio.Lock()
    _holders[user_id] = _holders.get(user_id, 0) + 1
    return lock


def _release_slot(user_id: int) -> None:
    _holders[user_id] -= 1
    if _holders[user_id] == 0:
        # drop idle locks so the registry does not grow with the user base
        del _holders[user_id]
        del _locks[user_id]


@asynccontextmanager
async def user_scope(db: AsyncSession, user_id: int) -> AsyncIterator[User]:
    """Hold the user's billing lock, yield the locked user, commit on exit."""
    lock = _acquire_slot(user_id)
    try:
        async with lock:
            try:
                result = await db.execute(
                    select(User).where(User.id == user_id).with_for_update()
                )
                user = result.scalar_one_or_none()
                if user is None:
                    raise NotFoundError("Usuário não encontrado")
                yield user
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                logger.warning(f"Concurrent subscription write rejected for user {user_id}: {e.orig}")
                raise ConflictError()
            except BaseException:
                await db.rollback()
                raise
    finally:
        _release_slot(user_id)


def held_locks() -> int:
    """Number of users with a live lock entry."""
    return len(_locks)
