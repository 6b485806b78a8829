# storefront/services/lock_service.py
import threading
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator

import redis
from tenacity import retry, stop_after_delay, wait_random_exponential, retry_if_result, RetryError

from storefront.domain.errors import CartBusy
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, CART_LOCK_TTL_SECONDS, CART_LOCK_WAIT_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#compare-and-delete in one Lua call, nobody can get in between GET and DEL
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    Per-key mutual exclusion in Redis (SET NX EX + owner token).
    Used to serialize read-modify-write of one session's cart across
    workers; different keys never wait on each other.
    """

    def __init__(
        self,
        url: str | None = None,
        ttl: int = CART_LOCK_TTL_SECONDS,
        wait: float = CART_LOCK_WAIT_SECONDS,
        client: redis.Redis | None = None,
    ):
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.ttl = ttl
        self.wait = wait

    @redis_retry()
    def acquire(self, key: str, owner: str, ttl: int) -> bool:
        #SET lock:cart:abc "<token>" NX EX 10
        return bool(self.redis.set(name=f"lock:{key}", value=owner, nx=True, ex=ttl))

    @redis_retry()
    def release(self, key: str, owner: str) -> bool:
        res = self.redis.eval(_RELEASE_LUA, 1, f"lock:{key}", owner)
        return bool(res)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        owner = uuid.uuid4().hex

        @retry(
            stop=stop_after_delay(self.wait),
            wait=wait_random_exponential(multiplier=0.01, max=0.2),
            retry=retry_if_result(lambda ok: not ok),
        )
        def _acquire() -> bool:
            return self.acquire(key, owner, self.ttl)

        try:
            _acquire()
        except RetryError:
            logger.warning(f"Lock {key} not acquired within {self.wait}s")
            raise CartBusy("Cart is being modified by another request, try again")

        try:
            yield
        finally:
            if not self.release(key, owner):
                logger.warning(f"Lock {key} expired before release")


class LocalLockService:
    """
    In-process variant of LockService, one threading.Lock per key.
    A key's entry is dropped once nobody holds or waits for it.
    """

    def __init__(self, wait: float = CART_LOCK_WAIT_SECONDS):
        self.wait = wait
        #key -> [lock, holders and waiters]
        self._locks: Dict[str, list] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=self.wait):
                logger.warning(f"Lock {key} not acquired within {self.wait}s")
                raise CartBusy("Cart is being modified by another request, try again")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)
