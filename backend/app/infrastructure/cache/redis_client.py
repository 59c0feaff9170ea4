from functools import lru_cache

from redis import Redis
from redis.exceptions import RedisError

from app.config import settings


@lru_cache(maxsize=1)
def _client_for(url: str) -> Redis:
    return Redis.from_url(url, decode_responses=True, socket_connect_timeout=1, socket_timeout=1)


def get_redis_client() -> Redis:
    return _client_for(settings.redis_url)


def redis_is_available(client: Redis) -> bool:
    try:
        return bool(client.ping())
    except RedisError:
        return False
