"""
Reliability utilities.

Maps transient database failures onto ``StoreUnavailableError`` and provides
a backoff retry decorator for idempotent reads.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from functools import wraps
from typing import Callable, Optional

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from evfleet.app.core.config import settings
from evfleet.app.core.exceptions import StoreUnavailableError

logger = logging.getLogger("evfleet.reliability")


def is_transient_store_error(exc: BaseException) -> bool:
    """True for failures caused by the store being unreachable or slow."""
    if isinstance(exc, (PoolTimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    if isinstance(exc, DBAPIError):
        return bool(exc.connection_invalidated)
    return False


@asynccontextmanager
async def store_errors(db: Optional[AsyncSession] = None):
    """
    Translate transient store failures raised inside the block.

    On a transient failure the session (if given) is rolled back and
    ``StoreUnavailableError`` is raised from the original exception.
    Everything else propagates unchanged.
    """
    try:
        yield
    except Exception as exc:
        if not is_transient_store_error(exc):
            raise
        logger.warning("Store unavailable: %s: %s", type(exc).__name__, exc)
        if db is not None:
            try:
                await db.rollback()
            except DBAPIError as rollback_exc:
                logger.warning("Rollback after store failure also failed: %s", rollback_exc)
        raise StoreUnavailableError() from exc


def retry_on_store_unavailable(attempts: Optional[int] = None, base_delay: Optional[float] = None):
    """
    Retry an async callable on ``StoreUnavailableError`` with exponential backoff.

    Only use on idempotent operations. Validation and conflict errors are
    never retried.
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            max_attempts = attempts or settings.store_retry_attempts
            delay = settings.store_retry_base_delay_seconds if base_delay is None else base_delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except StoreUnavailableError:
                    if attempt == max_attempts:
                        raise
                    logger.info(
                        "Retrying %s after store failure (attempt %d/%d)",
                        func.__name__, attempt, max_attempts
                    )
                    await asyncio.sleep(delay * (2 ** (attempt - 1)))
        return wrapper
    return decorator
