"""
Tests for the client-side TTL cache
"""

import asyncio
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from idealauncher.cache import (
    ClientCache,
    cache_keys,
    invalidate_idea,
    invalidate_ideas,
    invalidate_research,
    optimistic_update,
    start_periodic_cleanup,
    with_cache,
)


def test_entries_expire_after_ttl():
    cache = ClientCache(default_ttl=60)
    with patch("idealauncher.cache.time.time", return_value=1000.0):
        cache.set("k", "v")
    with patch("idealauncher.cache.time.time", return_value=1060.0):
        assert cache.get("k") == "v"
    with patch("idealauncher.cache.time.time", return_value=1061.0):
        assert cache.get("k") is None
    # Lazily evicted on read
    assert cache.stats()["size"] == 0


def test_per_entry_ttl_overrides_default():
    cache = ClientCache(default_ttl=300)
    with patch("idealauncher.cache.time.time", return_value=0.0):
        cache.set("short", 1, ttl=5)
        cache.set("long", 2)
    with patch("idealauncher.cache.time.time", return_value=10.0):
        assert cache.get("short") is None
        assert cache.get("long") == 2


def test_cleanup_removes_only_expired():
    cache = ClientCache(default_ttl=10)
    with patch("idealauncher.cache.time.time", return_value=0.0):
        cache.set("old", 1)
    with patch("idealauncher.cache.time.time", return_value=8.0):
        cache.set("new", 2)
    with patch("idealauncher.cache.time.time", return_value=15.0):
        assert cache.cleanup() == 1
    assert cache.stats()["keys"] == ["new"]


def test_cache_keys():
    assert cache_keys.ideas("u1") == "ideas:u1"
    assert cache_keys.research("i1", "naming") == "research:i1:naming"
    assert cache_keys.domain_check(["b.com", "a.com"]) == "domains:a.com,b.com"


def test_invalidate_idea_clears_related_keys():
    cache = ClientCache()
    for key in (cache_keys.idea("i1"), cache_keys.chat_history("i1"), cache_keys.scores("i1"),
                cache_keys.features("i1"), cache_keys.idea("i2")):
        cache.set(key, "x")
    invalidate_idea("i1", cache)
    assert cache.stats()["keys"] == [cache_keys.idea("i2")]


def test_invalidate_ideas_and_research():
    cache = ClientCache()
    cache.set(cache_keys.ideas("u1"), [])
    cache.set(cache_keys.research("i1", "naming"), [])
    cache.set(cache_keys.research("i1", "competitors"), [])
    cache.set(cache_keys.research("i2", "naming"), [])

    invalidate_ideas("u1", cache)
    invalidate_research("i1", "naming", cache=cache)
    assert cache.get(cache_keys.research("i1", "competitors")) == []

    invalidate_research("i1", cache=cache)
    assert sorted(cache.stats()["keys"]) == [cache_keys.research("i2", "naming")]


def test_with_cache_fetches_once():
    cache = ClientCache()
    calls = []

    async def fetch():
        calls.append(1)
        return {"id": "i1"}

    async def run():
        first = await with_cache("idea:i1", fetch, cache=cache)
        second = await with_cache("idea:i1", fetch, cache=cache)
        return first, second

    first, second = asyncio.run(run())
    assert first == second == {"id": "i1"}
    assert len(calls) == 1


def test_optimistic_update_writes_through():
    cache = ClientCache()
    cache.set("ideas:u1", [{"id": "a"}])
    updated = optimistic_update("ideas:u1", lambda items: [{"id": "b"}] + items, cache=cache)
    assert updated == [{"id": "b"}, {"id": "a"}]
    assert cache.get("ideas:u1") == updated


def test_periodic_cleanup_task_can_be_cancelled():
    async def run():
        cache = ClientCache()
        task = start_periodic_cleanup(cache, interval=3600)
        await asyncio.sleep(0)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return task.cancelled()

    assert asyncio.run(run())
