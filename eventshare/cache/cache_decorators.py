"""
Read-through caching for coroutine results.
"""
from functools import wraps
from typing import Callable, Any
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.cache import redis_client
from eventshare.core.logging import logger


def cached(key_prefix: str, expire: int = 300):
    """
    Cache a coroutine's JSON-serialisable result under ``{key_prefix}:{args}``.

    Session arguments are left out of the key, so
    ``get_user_stats(session, user_id)`` is cached as ``users:stats:<user_id>``
    and can be dropped with ``cache.delete_pattern("users:stats:*")``.

    Usage:
        @cached("users:stats", expire=60)
        async def get_user_stats(session, user_id):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            cache_key = f"{key_prefix}:{build_cache_key(args, kwargs)}"

            cached_value = await redis_client.cache.get(cache_key)
            if cached_value is not None:
                logger.debug(f"Cache hit for key: {cache_key}")
                return cached_value

            logger.debug(f"Cache miss for key: {cache_key}")
            result = await func(*args, **kwargs)
            await redis_client.cache.set(cache_key, result, expire)
            return result
        return wrapper
    return decorator


def build_cache_key(args: tuple, kwargs: dict) -> str:
    """Join the non-session arguments into a readable key segment."""
    parts = [str(arg) for arg in args if not isinstance(arg, AsyncSession)]
    parts.extend(f"{k}={v}" for k, v in sorted(kwargs.items()))
    return ":".join(parts)


async def invalidate_user_stats(user_id) -> None:
    """Drop the cached ``users:stats`` entry of one user."""
    await redis_client.cache.delete(f"users:stats:{user_id}")
