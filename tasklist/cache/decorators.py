from functools import wraps
from typing import Callable

from tasklist.cache.layer import cache_layer


def async_cached(key_builder: Callable[..., str], l2_ttl: int = None):
    """
    Read-through caching for a coroutine that returns a document or None.

    key_builder receives the same args/kwargs as the wrapped function:

      @async_cached(lambda task_id, *_, **__: f"task:{task_id}")
      async def get_task(task_id, conn): ...

    None results are never cached, so a missing document is looked up
    again on the next call.
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(*args, **kwargs):
            key = key_builder(*args, **kwargs)

            async def loader():
                value = await fn(*args, **kwargs)
                if hasattr(value, "model_dump"):
                    return value.model_dump()
                return value

            value = await cache_layer.get(key, loader=loader, l2_ttl=l2_ttl)
            # callers may mutate the result; keep the L1 entry intact
            return dict(value) if isinstance(value, dict) else value

        return wrapper

    return decorator


def async_cached_expire(key_builder: Callable[..., str]):
    """
    Drop the cached entry around a write.

    The key is deleted before the write and again after it. Each delete
    bumps the key generation in the cache layer, so a read that loaded the
    old document while the write ran returns it but does not store it.
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(*args, **kwargs):
            key = key_builder(*args, **kwargs)
            await cache_layer.delete(key)
            try:
                return await fn(*args, **kwargs)
            finally:
                await cache_layer.delete(key)

        return wrapper

    return decorator
