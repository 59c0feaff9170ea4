import uuid

from redis.exceptions import RedisError

from app.infrastructure.cache.redis_client import get_redis_client
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)


def set_flag(cache_key: str, ttl_seconds: int) -> None:
    if ttl_seconds <= 0:
        return
    try:
        get_redis_client().setex(cache_key, ttl_seconds, "1")
    except RedisError as exc:
        logger.warning("cache_set_flag_failed", cache_key=cache_key, error=str(exc))


def has_flag(cache_key: str, *, default: bool = False) -> bool:
    """Return whether the key exists, or `default` when Redis cannot answer."""
    try:
        return bool(get_redis_client().exists(cache_key))
    except RedisError as exc:
        logger.warning("cache_has_flag_failed", cache_key=cache_key, error=str(exc), default=default)
        return default


def acquire_lock(lock_key: str, ttl_seconds: int) -> str | None:
    token = str(uuid.uuid4())
    try:
        acquired = bool(get_redis_client().set(lock_key, token, nx=True, ex=ttl_seconds))
    except RedisError:
        return token
    return token if acquired else None


def release_lock(lock_key: str, token: str) -> None:
    release_script = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""
    try:
        get_redis_client().eval(release_script, 1, lock_key, token)
    except RedisError:
        return
