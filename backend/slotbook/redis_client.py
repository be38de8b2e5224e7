# backend/slotbook/redis_client.py

from redis import Redis


def make_redis(url: str | None) -> Redis | None:
    """Redis client for the cache, lock and event queue; None when not configured."""
    if not url:
        return None
    return Redis.from_url(url, decode_responses=True)
