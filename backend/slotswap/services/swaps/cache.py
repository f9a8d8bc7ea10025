# backend/slotswap/services/swaps/cache.py
"""
Redis read-through cache for slot and swap views.

Key format (scope:id):
    cache:slots:offered:{viewer_id}   offered slots visible to a viewer (global scope)
    cache:slots:user:{user_id}        a user's own slots
    cache:slot:{slot_id}              slot detail
    cache:swaps:user:{user_id}        a user's incoming/outgoing proposals
    cache:generation                  bumped by every invalidation

Values are JSON snapshots with a TTL. The cache is never authoritative:
every Redis failure is logged and reported as a miss, so callers fall
through to the database.

A reader that loaded from the database while a write committed must not
put its snapshot back after the write's invalidation. Readers note the
generation before loading and fill the cache only if it is unchanged
(WATCH / MULTI).
"""

import json
import logging
from typing import Any, Optional

from redis import Redis, RedisError, WatchError

from .config import SwapCacheConfig, get_cache_config

logger = logging.getLogger(__name__)


class CacheKeys:
    OFFERED_SCOPE = "cache:slots:offered"
    USER_SLOTS_SCOPE = "cache:slots:user"
    SLOT_SCOPE = "cache:slot"
    USER_SWAPS_SCOPE = "cache:swaps:user"
    GENERATION = "cache:generation"

    @classmethod
    def offered(cls, viewer_id: int) -> str:
        return f"{cls.OFFERED_SCOPE}:{viewer_id}"

    @classmethod
    def user_slots(cls, user_id: int) -> str:
        return f"{cls.USER_SLOTS_SCOPE}:{user_id}"

    @classmethod
    def slot(cls, slot_id: int) -> str:
        return f"{cls.SLOT_SCOPE}:{slot_id}"

    @classmethod
    def user_swaps(cls, user_id: int) -> str:
        return f"{cls.USER_SWAPS_SCOPE}:{user_id}"


class AvailabilityCache:
    """Redis wrapper: get / set / invalidate / invalidate_scope."""

    def __init__(self, redis: Redis, config: SwapCacheConfig | None = None):
        self.redis = redis
        self.config = config or get_cache_config()

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        """Cached value, or None on miss (or when Redis is unreachable)."""
        try:
            raw = self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Cache GET {key} failed: {e}")
            return None

        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Cache entry {key} is not valid JSON, dropping it")
            self.invalidate(key)
            return None

    def generation(self) -> Optional[str]:
        """Current invalidation generation, or None when Redis is unreachable."""
        try:
            return self._read_generation(self.redis)
        except RedisError as e:
            logger.warning(f"Cache generation read failed: {e}")
            return None

    @staticmethod
    def _read_generation(client) -> str:
        value = client.get(CacheKeys.GENERATION)
        if isinstance(value, bytes):
            value = value.decode()
        return value or "0"

    # ── Write ────────────────────────────────────────────────────────────

    def set(self, key: str, value: Any, ttl: int, generation: Optional[str] = None) -> bool:
        """
        Store value under key for ttl seconds.

        With generation, the write happens only if no invalidation ran
        since that generation was read; otherwise it is skipped.
        """
        payload = json.dumps(value, default=str)
        try:
            if generation is None:
                self.redis.setex(key, ttl, payload)
                return True

            with self.redis.pipeline() as pipe:
                pipe.watch(CacheKeys.GENERATION)
                if self._read_generation(pipe) != generation:
                    logger.debug(f"Cache SET {key} skipped: invalidated while loading")
                    return False
                pipe.multi()
                pipe.setex(key, ttl, payload)
                pipe.execute()
            return True
        except WatchError:
            logger.debug(f"Cache SET {key} skipped: invalidated while loading")
            return False
        except RedisError as e:
            logger.warning(f"Cache SET {key} failed: {e}")
            return False

    # ── Delete ───────────────────────────────────────────────────────────

    def bump_generation(self) -> bool:
        """Mark every in-flight read-through load as stale."""
        try:
            self.redis.incr(CacheKeys.GENERATION)
            return True
        except RedisError as e:
            logger.warning(f"Cache generation bump failed: {e}")
            return False

    def invalidate(self, *keys: str) -> bool:
        """Delete the given keys. Returns False if Redis failed."""
        if not keys:
            return True
        try:
            self.redis.delete(*keys)
            return True
        except RedisError as e:
            logger.warning(f"Cache DEL {', '.join(keys)} failed: {e}")
            return False

    def invalidate_scope(self, scope: str) -> bool:
        """Delete every key under a scope prefix, e.g. CacheKeys.OFFERED_SCOPE."""
        try:
            keys = self.redis.keys(f"{scope}:*")
            if keys:
                self.redis.delete(*keys)
            return True
        except RedisError as e:
            logger.warning(f"Cache DEL scope {scope} failed: {e}")
            return False
