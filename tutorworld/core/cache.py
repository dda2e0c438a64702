import redis

from tutorworld.core.config import settings

_redis_client = None


def get_redis_client():
    global _redis_client
    if _redis_client is None:
        # Use simple redis client (synchronous) for lightweight operations
        _redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


def close_redis_client():
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None
