"""Tests for the bounded TTL cache."""

import pytest

from app.core.cache import TTLCache, generate_geocache_key


class TestTTLCache:
    """LRU and TTL behavior of TTLCache."""

    def test_get_returns_stored_value(self, clock):
        cache = TTLCache(capacity=3, ttl_seconds=60, clock=clock)
        cache.set("k1", "v1")

        assert cache.get("k1") == "v1"
        assert cache.get("missing") is None

    def test_overflow_evicts_least_recently_used(self, clock):
        """A get() protects an entry from the next eviction."""
        cache = TTLCache(capacity=3, ttl_seconds=60, clock=clock)
        cache.set("k1", 1)
        cache.set("k2", 2)
        cache.set("k3", 3)
        cache.get("k1")

        cache.set("k4", 4)

        assert "k2" not in cache
        assert cache.get("k1") == 1
        assert cache.get("k3") == 3
        assert cache.get("k4") == 4
        assert cache.size() == 3

    def test_set_existing_key_refreshes_without_eviction(self, clock):
        cache = TTLCache(capacity=2, ttl_seconds=60, clock=clock)
        cache.set("k1", 1)
        cache.set("k2", 2)
        cache.set("k1", 10)
        cache.set("k3", 3)

        assert cache.get("k1") == 10
        assert "k2" not in cache

    def test_entry_expires_after_ttl(self, clock):
        cache = TTLCache(capacity=3, ttl_seconds=10, clock=clock)
        cache.set("k1", "v1")

        clock.advance(9.9)
        assert cache.get("k1") == "v1"

        clock.advance(0.2)
        assert cache.get("k1") is None
        assert len(cache) == 0

    def test_set_refreshes_timestamp(self, clock):
        cache = TTLCache(capacity=3, ttl_seconds=10, clock=clock)
        cache.set("k1", "v1")
        clock.advance(8)
        cache.set("k1", "v2")
        clock.advance(8)

        assert cache.get("k1") == "v2"

    def test_clean_expired_removes_only_expired_entries(self, clock):
        cache = TTLCache(capacity=5, ttl_seconds=10, clock=clock)
        cache.set("old1", 1)
        cache.set("old2", 2)
        clock.advance(6)
        cache.set("fresh", 3)
        clock.advance(5)

        assert cache.clean_expired() == 2
        assert cache.get("fresh") == 3
        assert cache.size() == 1

    def test_get_stats(self, clock):
        cache = TTLCache(capacity=4, ttl_seconds=10, clock=clock)
        cache.set("a", 1)

        assert cache.get_stats() == {"size": 1, "capacity": 4, "utilization": 25.0}

    def test_clear(self, clock):
        cache = TTLCache(capacity=2, clock=clock)
        cache.set("a", 1)
        cache.clear()

        assert cache.size() == 0

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            TTLCache(capacity=0)


class TestGenerateGeocacheKey:
    """Cache key derivation for geocoding lookups."""

    def test_address_keys_ignore_case_and_spacing(self):
        assert generate_geocache_key(address="123  Main St") == generate_geocache_key(
            address="123 main st"
        )

    def test_coordinate_keys_round_to_five_places(self):
        key = generate_geocache_key(lat=38.8976763, lng=-77.0365298)

        assert key == "coord:38.89768,-77.03653"
        assert key == generate_geocache_key(lat=38.897681, lng=-77.036531)

    def test_address_and_coordinate_keys_do_not_collide(self):
        assert generate_geocache_key(address="1,2") != generate_geocache_key(
            lat=1, lng=2
        )

    def test_requires_address_or_coordinates(self):
        with pytest.raises(ValueError):
            generate_geocache_key()
        with pytest.raises(ValueError):
            generate_geocache_key(lat=1.0)
