"""
Redis caching for poll state
Computed poll state is cached briefly and invalidated on every vote mutation.
Every operation fails open: a missing or broken Redis only costs a recompute.
"""

import json
import logging
from typing import Any, Callable, Optional

import redis

from .config import (
    POLL_STATE_CACHE_TTL,
    REDIS_DB,
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_SSL,
    REDIS_URL,
)

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get or create the Redis client.
    Returns None when Redis is not configured.
    """
    global redis_client

    if redis_client is not None:
        return redis_client

    if REDIS_URL:
        redis_client = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
    elif REDIS_HOST:
        redis_client = redis.Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            password=REDIS_PASSWORD,
            db=REDIS_DB,
            ssl=REDIS_SSL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
    else:
        return None

    redis_client.ping()
    logger.info("Redis connected successfully")
    return redis_client


class PollStateCache:
    """
    Shared poll state keyed by poll id, stored as JSON with a short TTL.
    The client is resolved on first use; once Redis is found missing or
    unreachable the cache stays off for the life of the process.
    """

    def __init__(self, client: Optional[redis.Redis] = None, ttl: int = POLL_STATE_CACHE_TTL):
        self.client = client
        self.ttl = ttl
        self.disabled = False

    def _resolve_client(self) -> Optional[redis.Redis]:
        if self.client is not None or self.disabled:
            return self.client
        try:
            self.client = get_redis_client()
        except Exception as e:
            logger.warning(f"⚠️ Poll state cache off, Redis unreachable: {e}")
        if self.client is None:
            self.disabled = True
        return self.client

    def _run(self, verb: str, poll_id: str, operation: Callable[[redis.Redis, str], Any]) -> tuple[bool, Any]:
        """Run one Redis call; (False, None) when the cache is off or the call failed"""
        client = self._resolve_client()
        if client is None:
            return False, None
        try:
            return True, operation(client, poll_state_key(poll_id))
        except Exception as e:
            logger.error(f"❌ Poll state cache {verb} failed for poll {poll_id}: {e}")
            return False, None

    def load(self, poll_id: str) -> Optional[dict]:
        _, raw = self._run("read", poll_id, lambda client, key: client.get(key))
        return json.loads(raw) if raw else None

    def store(self, poll_id: str, state: dict) -> bool:
        payload = json.dumps(state, default=str)
        ok, _ = self._run("write", poll_id, lambda client, key: client.setex(key, self.ttl, payload))
        return ok

    def invalidate(self, poll_id: str) -> bool:
        ok, _ = self._run("invalidate", poll_id, lambda client, key: client.delete(key))
        return ok


def poll_state_key(poll_id: str) -> str:
    return f"poll_state:{poll_id}"


poll_state_cache = PollStateCache()


def get_poll_state_cached(poll_id: str) -> Optional[dict]:
    return poll_state_cache.load(poll_id)


def set_poll_state_cached(poll_id: str, state: dict) -> bool:
    return poll_state_cache.store(poll_id, state)


def invalidate_poll_state(poll_id: str) -> bool:
    """Drop cached state after any vote or status change"""
    return poll_state_cache.invalidate(poll_id)
