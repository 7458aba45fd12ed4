"""
Retry helper for idempotent reads.
"""
from functools import wraps
from typing import Callable, Any
from sqlalchemy.exc import OperationalError, InterfaceError
from eventshare.core.exceptions import UnavailableError
from eventshare.core.logging import logger

TRANSIENT_ERRORS = (OperationalError, InterfaceError)


def retry_read(func: Callable) -> Callable:
    """
    Retry a read-only coroutine once on a transient database error.

    The first positional argument must be the ``AsyncSession``; it is rolled
    back between attempts. A second failure surfaces as ``UnavailableError``.
    """
    @wraps(func)
    async def wrapper(session, *args, **kwargs) -> Any:
        try:
            return await func(session, *args, **kwargs)
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Transient database error in {func.__name__}, retrying: {e}")
            await session.rollback()
        try:
            return await func(session, *args, **kwargs)
        except TRANSIENT_ERRORS as e:
            await session.rollback()
            logger.error(f"Database unavailable in {func.__name__}: {e}")
            raise UnavailableError("Database temporarily unavailable")
    return wrapper
