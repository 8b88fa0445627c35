from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError

from hrflow.config import get_settings
from hrflow.exceptions import AppError, ConcurrencyConflictError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def is_retryable(exc: DBAPIError) -> bool:
    """True for conflicts a fresh attempt can resolve."""
    if isinstance(exc, IntegrityError):
        # Racing creation of the same balance row or reference code.
        return True
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    return sqlstate in _RETRYABLE_SQLSTATES


async def run_with_retry(session: AsyncSession, operation: Callable[[], Awaitable[T]]) -> T:
    """Run ``operation`` as one transaction, retrying conflicts up to ``conflict_retry_attempts`` times.

    ``operation`` must commit its own work and re-read everything it touches, since each
    failed attempt is rolled back in full. Raises ConcurrencyConflictError once the
    attempts are used up.
    """
    attempts = max(1, get_settings().conflict_retry_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except DBAPIError as exc:
            await session.rollback()
            if not is_retryable(exc):
                raise
            logger.warning("Transaction conflict on attempt %d/%d: %s", attempt, attempts, exc.__class__.__name__)
        except AppError:
            await session.rollback()
            raise
    raise ConcurrencyConflictError
