# storefront/services/lock_service.py
import uuid
from contextlib import contextmanager

import redis

from storefront.domain.exceptions import ConcurrencyConflictError, StorageFailureError
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, CART_LOCK_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# compare-and-delete, atomic because redis runs the script as one operation
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    Per-user cart lock:
    - acquire with SET NX EX, so a crashed holder expires on its own
    - release only if we still own the token
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def cart_key(user_id: int) -> str:
        return f"cart:{user_id}:lock"

    @redis_retry()
    def acquire(self, key: str, token: str, ttl: int) -> bool:
        logger.info(f"Acquire lock {key}")
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release(self, key: str, token: str) -> bool:
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)

    @contextmanager
    def user_cart_lock(self, user_id: int, ttl: int = CART_LOCK_TTL_SECONDS):
        key = self.cart_key(user_id)
        token = uuid.uuid4().hex

        try:
            acquired = self.acquire(key, token, ttl)
        except redis.RedisError as e:
            logger.error(f"Lock backend unavailable for {key}: {e}")
            raise StorageFailureError("Cart lock is unavailable, retry") from e

        if not acquired:
            raise ConcurrencyConflictError(
                "Another cart operation for this user is in progress, retry"
            )
        try:
            yield
        finally:
            try:
                self.release(key, token)
            except redis.RedisError as e:
                # the TTL frees the key anyway
                logger.warning(f"Failed to release lock {key}: {e}")
