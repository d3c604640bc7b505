# In-memory TTL cache used by the API client
# Entries expire lazily on read; a periodic sweep removes the rest

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from idealauncher.config import CACHE_CLEANUP_INTERVAL_SECONDS, CACHE_DEFAULT_TTL_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


class ClientCache:
    def __init__(self, default_ttl: float = CACHE_DEFAULT_TTL_SECONDS):
        self.default_ttl = default_ttl
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Cached value for ``key``, or None when missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(time.time()):
            del self._entries[key]
            return None
        return entry.data

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(data=data, timestamp=time.time(), ttl=ttl or self.default_ttl)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = time.time()
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> dict:
        return {"size": len(self._entries), "keys": list(self._entries.keys())}


# Shared instance for the process
client_cache = ClientCache()


class cache_keys:
    """Key templates for cached reads."""

    @staticmethod
    def ideas(user_id: str) -> str:
        return f"ideas:{user_id}"

    @staticmethod
    def idea(idea_id: str) -> str:
        return f"idea:{idea_id}"

    @staticmethod
    def chat_history(idea_id: str) -> str:
        return f"chat:{idea_id}"

    @staticmethod
    def research(idea_id: str, research_type: str) -> str:
        return f"research:{idea_id}:{research_type}"

    @staticmethod
    def scores(idea_id: str) -> str:
        return f"scores:{idea_id}"

    @staticmethod
    def features(idea_id: str) -> str:
        return f"features:{idea_id}"

    @staticmethod
    def exports(idea_id: str) -> str:
        return f"exports:{idea_id}"

    @staticmethod
    def tech(idea_id: str) -> str:
        return f"tech:{idea_id}"

    @staticmethod
    def domain_check(names: Iterable[str]) -> str:
        return f"domains:{','.join(sorted(names))}"


def invalidate_idea(idea_id: str, cache: Optional[ClientCache] = None) -> None:
    cache = cache or client_cache
    for key in (
        cache_keys.idea(idea_id),
        cache_keys.chat_history(idea_id),
        cache_keys.scores(idea_id),
        cache_keys.features(idea_id),
    ):
        cache.delete(key)


def invalidate_ideas(user_id: str, cache: Optional[ClientCache] = None) -> None:
    (cache or client_cache).delete(cache_keys.ideas(user_id))


def invalidate_research(idea_id: str, research_type: Optional[str] = None,
                        cache: Optional[ClientCache] = None) -> None:
    """Drop one research type for an idea, or all of them when no type is given."""
    cache = cache or client_cache
    if research_type:
        cache.delete(cache_keys.research(idea_id, research_type))
        return
    prefix = f"research:{idea_id}:"
    for key in cache.stats()["keys"]:
        if key.startswith(prefix):
            cache.delete(key)


async def with_cache(key: str, fetcher: Callable[[], Awaitable[Any]],
                     ttl: Optional[float] = None, cache: Optional[ClientCache] = None) -> Any:
    """Return the cached value or fetch, store and return a fresh one."""
    cache = cache or client_cache
    cached = cache.get(key)
    if cached is not None:
        return cached
    data = await fetcher()
    cache.set(key, data, ttl)
    return data


def optimistic_update(key: str, updater: Callable[[Optional[Any]], Any],
                      ttl: Optional[float] = None, cache: Optional[ClientCache] = None) -> Any:
    cache = cache or client_cache
    updated = updater(cache.get(key))
    cache.set(key, updated, ttl)
    return updated


async def _cleanup_loop(cache: ClientCache, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        removed = cache.cleanup()
        if removed:
            logger.debug(f"Cache sweep removed {removed} expired entries")


def start_periodic_cleanup(cache: Optional[ClientCache] = None,
                           interval: float = CACHE_CLEANUP_INTERVAL_SECONDS) -> asyncio.Task:
    """Start the sweep on the running loop; cancel the returned task to stop it."""
    return asyncio.get_running_loop().create_task(_cleanup_loop(cache or client_cache, interval))
