# storefront/services/session_store.py
import json
import threading
import time
from typing import Any, Dict, Protocol

import redis

from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, SESSION_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class SessionStore(Protocol):
    """Opaque key-value state per session id, bounded by a TTL."""

    def get(self, session_id: str) -> Dict[str, Any] | None: ...

    def set(self, session_id: str, data: Dict[str, Any]) -> None: ...

    def delete(self, session_id: str) -> None: ...


class MemorySessionStore:
    """Single-process store for tests and local development."""

    def __init__(self, ttl: int = SESSION_TTL_SECONDS, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._data: Dict[str, tuple[float, str]] = {}
        self._guard = threading.Lock()

    def get(self, session_id: str) -> Dict[str, Any] | None:
        with self._guard:
            entry = self._data.get(session_id)
            if entry is None:
                return None
            expires, payload = entry
            if expires <= self._clock():
                del self._data[session_id]
                return None
        #stored serialized so callers never share a mutable dict
        return json.loads(payload)

    def set(self, session_id: str, data: Dict[str, Any]) -> None:
        with self._guard:
            self._data[session_id] = (self._clock() + self.ttl, json.dumps(data))

    def delete(self, session_id: str) -> None:
        with self._guard:
            self._data.pop(session_id, None)


class RedisSessionStore:
    def __init__(self, url: str | None = None, ttl: int = SESSION_TTL_SECONDS, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.ttl = ttl

    @staticmethod
    def _key(session_id: str) -> str:
        return f"session:{session_id}:cart"

    @redis_retry()
    def get(self, session_id: str) -> Dict[str, Any] | None:
        raw = self.redis.get(self._key(session_id))
        return json.loads(raw) if raw else None

    @redis_retry()
    def set(self, session_id: str, data: Dict[str, Any]) -> None:
        #every write renews the TTL, an active shopper keeps the cart
        self.redis.set(self._key(session_id), json.dumps(data), ex=self.ttl)

    @redis_retry()
    def delete(self, session_id: str) -> None:
        self.redis.delete(self._key(session_id))
