"""
Redis cache for per-store computed views (statistics dashboard).

Keys: {prefix}:store:{store_id}:{module}:g{generation}:{key}

Each (store, module) pair has a generation counter; invalidating a module
bumps the counter so older entries are never read again and expire on
their own TTL. Without Redis every lookup falls through to the loader.
"""

import logging
import json
from typing import Any, Optional, Callable
from decimal import Decimal

import redis
from redis.exceptions import RedisError
from flask import Flask, current_app

logger = logging.getLogger(__name__)

STATISTICS_MODULE = 'statistics'

_DECIMAL_TAG = '__decimal__'


def _encode(value: Any) -> str:
    def default(obj):
        if isinstance(obj, Decimal):
            return {_DECIMAL_TAG: str(obj)}
        if hasattr(obj, 'isoformat'):
            return obj.isoformat()
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
    return json.dumps(value, default=default)


def _decode(raw: str) -> Any:
    def hook(obj):
        if _DECIMAL_TAG in obj:
            return Decimal(obj[_DECIMAL_TAG])
        return obj
    return json.loads(raw, object_hook=hook)


class CacheService:
    """Store-scoped cache-aside over Redis."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled = False
        self._prefix = 'pdv'

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self._enabled = app.config.get('CACHE_ENABLED', True)
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'pdv')

        if not self._enabled:
            logger.info("[CACHE] Disabled via config")
            return

        redis_url = app.config.get('REDIS_URL')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unavailable ({e}), running uncached")
            self._enabled = False
            self.client = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def is_available(self) -> bool:
        if not self._enabled or self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def _module_prefix(self, store_id: int, module: str) -> str:
        return f"{self._prefix}:store:{store_id}:{module}"

    def _generation(self, store_id: int, module: str) -> int:
        raw = self.client.get(f"{self._module_prefix(store_id, module)}:gen")
        return int(raw or 0)

    def _key(self, store_id: int, module: str, key: str) -> str:
        generation = self._generation(store_id, module)
        return f"{self._module_prefix(store_id, module)}:g{generation}:{key}"

    def get(self, store_id: int, module: str, key: str) -> Optional[Any]:
        if not self.is_available():
            return None
        try:
            raw = self.client.get(self._key(store_id, module, key))
        except RedisError as e:
            logger.warning(f"[CACHE] Get failed: {e}")
            return None
        if raw is None:
            return None
        try:
            return _decode(raw)
        except ValueError:
            logger.warning(f"[CACHE] Dropping undecodable entry for store={store_id} {module}:{key}")
            return None

    def set(self, store_id: int, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.is_available():
            return False
        if ttl is None:
            ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60)
        try:
            self.client.setex(self._key(store_id, module, key), ttl, _encode(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Set failed: {e}")
            return False

    def memoize(self, store_id: int, module: str, key: str, loader_fn: Callable[[], Any],
                ttl: Optional[int] = None) -> Any:
        """Return the cached value or compute, store and return it."""
        cached = self.get(store_id, module, key)
        if cached is not None:
            logger.debug(f"[CACHE] HIT store={store_id} {module}:{key}")
            return cached
        value = loader_fn()
        self.set(store_id, module, key, value, ttl)
        return value

    def invalidate_module(self, store_id: int, module: str) -> bool:
        """Make every cached entry of the module stale for this store."""
        if not self.is_available():
            return False
        try:
            generation = self.client.incr(f"{self._module_prefix(store_id, module)}:gen")
            logger.info(f"[CACHE] INVALIDATE store={store_id} {module} -> g{generation}")
            return True
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate failed: {e}")
            return False


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service


def invalidate_statistics(store_id: int) -> None:
    """Drop cached statistics for a store after its sales change."""
    try:
        get_cache().invalidate_module(store_id, STATISTICS_MODULE)
    except RuntimeError:
        logger.debug("[CACHE] Invalidate skipped: cache not initialized")
