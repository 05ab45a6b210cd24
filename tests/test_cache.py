"""Tests for the TTL cache store."""

import logging

import pytest

from gitinsight_mcp.cache import CacheStore


class TestCacheRoundTrip:
    def test_set_then_get_returns_value(self, cache):
        cache.set("repos:octocat:all", ["a", "b"])
        assert cache.get("repos:octocat:all") == ["a", "b"]

    def test_missing_key_is_none(self, cache):
        assert cache.get("nope") is None

    def test_falsy_values_are_hits(self, cache):
        cache.set("readme:octocat:empty", "")
        cache.set("commits:octocat:all:50", [])
        assert cache.get("readme:octocat:empty") == ""
        assert cache.get("commits:octocat:all:50") == []

    def test_value_is_returned_by_reference(self, cache):
        payload = {"stars": 3}
        cache.set("k", payload)
        assert cache.get("k") is payload


class TestExpiry:
    def test_get_before_ttl_is_hit(self, cache, clock):
        cache.set("k", "v")
        clock.advance(59.9)
        assert cache.get("k") == "v"

    def test_get_at_ttl_is_miss(self, cache, clock):
        cache.set("k", "v")
        clock.advance(60)
        assert cache.get("k") is None

    def test_expired_entry_is_removed_on_read(self, cache, clock):
        cache.set("k", "v")
        clock.advance(61)
        cache.get("k")
        assert cache.stats()["keys"] == 0

    def test_custom_ttl_overrides_default(self, cache, clock):
        cache.set("short", "v", ttl=5)
        cache.set("long", "v")
        clock.advance(10)
        assert cache.get("short") is None
        assert cache.get("long") == "v"

    def test_sweep_removes_only_expired(self, cache, clock):
        cache.set("old", 1, ttl=10)
        cache.set("fresh", 2, ttl=100)
        clock.advance(20)
        assert cache.sweep() == 1
        assert cache.keys() == ["fresh"]

    def test_keys_and_has_ignore_expired_entries(self, cache, clock):
        cache.set("a", 1, ttl=10)
        cache.set("b", 2)
        clock.advance(15)
        assert cache.keys() == ["b"]
        assert not cache.has("a")
        assert cache.has("b")

    def test_reset_on_set(self, cache, clock):
        cache.set("k", "v1")
        clock.advance(50)
        cache.set("k", "v2")
        clock.advance(50)
        assert cache.get("k") == "v2"


class TestMutation:
    def test_delete(self, cache):
        cache.set("k", "v")
        assert cache.delete("k") == 1
        assert cache.delete("k") == 0
        assert cache.get("k") is None

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert cache.keys() == []

    def test_stats_count_hits_and_misses(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        assert cache.stats() == {"hits": 1, "misses": 1, "keys": 1}


def test_get_and_set_emit_traces(cache, caplog):
    with caplog.at_level(logging.DEBUG, logger="gitinsight_mcp.cache"):
        cache.get("k")
        cache.set("k", "v")
        cache.get("k")
    messages = [record.getMessage() for record in caplog.records]
    assert "MISS: k" in messages
    assert any(message.startswith("SET: k") for message in messages)
    assert "HIT: k" in messages


@pytest.mark.asyncio
async def test_sweeper_starts_and_stops():
    store = CacheStore(default_ttl=60, check_period=1)
    store.start_sweeper()
    try:
        assert store.sweeper_running
        # a second start is a no-op
        store.start_sweeper()
        assert store.sweeper_running
    finally:
        store.stop_sweeper()
    assert not store.sweeper_running
