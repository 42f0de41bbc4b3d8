"""
Unit tests for the store cache with an in-process Redis stand-in.
"""
from decimal import Decimal

from lojapdv.services.cache_service import CacheService, STATISTICS_MODULE


class FakeRedis:
    """Just the commands the cache uses."""

    def __init__(self):
        self.data = {}

    def ping(self):
        return True

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key) or 0) + 1)
        return int(self.data[key])


def _cache():
    cache = CacheService()
    cache.client = FakeRedis()
    cache._enabled = True
    return cache


def test_memoize_round_trips_decimals():
    cache = _cache()
    calls = []

    def load():
        calls.append(1)
        return {'revenue_today': Decimal('150.00'), 'sales_today': 2}

    first = cache.memoize(1, STATISTICS_MODULE, 'summary', load, ttl=60)
    second = cache.memoize(1, STATISTICS_MODULE, 'summary', load, ttl=60)

    assert len(calls) == 1
    assert second == first
    assert second['revenue_today'] == Decimal('150.00')


def test_invalidate_is_per_store():
    cache = _cache()
    cache.set(1, STATISTICS_MODULE, 'summary', {'n': 1}, ttl=60)
    cache.set(2, STATISTICS_MODULE, 'summary', {'n': 2}, ttl=60)

    assert cache.invalidate_module(1, STATISTICS_MODULE) is True

    assert cache.get(1, STATISTICS_MODULE, 'summary') is None
    assert cache.get(2, STATISTICS_MODULE, 'summary') == {'n': 2}


def test_disabled_cache_always_loads():
    cache = CacheService()
    calls = []

    cache.memoize(1, STATISTICS_MODULE, 'summary', lambda: calls.append(1) or {'n': 1})
    cache.memoize(1, STATISTICS_MODULE, 'summary', lambda: calls.append(1) or {'n': 1})

    assert len(calls) == 2
    assert cache.invalidate_module(1, STATISTICS_MODULE) is False
