"""
Optimistic local state for the API client.

A store shows a mutation immediately, then settles it against the server.
Every optimistic update bumps a sequence number; a write that settles after a
newer optimistic update has been applied records its confirmed value but
leaves the newer optimistic data on screen.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from idealauncher.cache import ClientCache

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class OptimisticValue(Generic[T]):
    data: Optional[T]
    is_optimistic: bool = False


class OptimisticStore(Generic[T]):
    def __init__(self, initial: Optional[T] = None,
                 cache: Optional[ClientCache] = None,
                 cache_key: Optional[str] = None,
                 on_success: Optional[Callable[[Any], None]] = None,
                 on_error: Optional[Callable[[Exception], None]] = None):
        self.value: OptimisticValue[T] = OptimisticValue(initial, False)
        self.confirmed: Optional[T] = initial
        self.error: Optional[Exception] = None
        self.cache = cache
        self.cache_key = cache_key
        self.on_success = on_success
        self.on_error = on_error
        self._sequence = 0

    @property
    def data(self) -> Optional[T]:
        return self.value.data

    @property
    def is_optimistic(self) -> bool:
        return self.value.is_optimistic

    def _publish(self, data: Optional[T], optimistic: bool) -> None:
        self.value = OptimisticValue(data, optimistic)
        if self.cache is not None and self.cache_key and data is not None:
            self.cache.set(self.cache_key, data)

    def update_optimistic(self, reducer: Callable[[Optional[T]], T]) -> T:
        """Apply ``reducer`` to the visible data right away."""
        self._sequence += 1
        data = reducer(self.value.data)
        self.error = None
        self._publish(data, True)
        return data

    async def commit_update(self, write: Callable[[], Awaitable[R]],
                            fallback: Optional[Callable[[Optional[T]], T]] = None,
                            apply_result: Optional[Callable[[R, Optional[T]], T]] = None) -> Optional[R]:
        """
        Run the server write and settle the optimistic state.

        On success the result (or ``apply_result(result, data)``) becomes the
        confirmed data. On failure the data reverts to ``fallback(confirmed)``
        or the confirmed value, the error is kept on ``self.error`` and None is
        returned. Nothing is raised.
        """
        sequence = self._sequence
        try:
            result = await write()
        except Exception as e:
            self.error = e
            logger.warning(f"Optimistic update failed, reverting: {e}")
            if sequence == self._sequence:
                reverted = fallback(self.confirmed) if fallback else self.confirmed
                self._publish(reverted, False)
            if self.on_error:
                self.on_error(e)
            return None

        final = apply_result(result, self.value.data) if apply_result else result
        self.confirmed = final
        self.error = None
        if sequence == self._sequence:
            self._publish(final, False)
        else:
            logger.debug("Discarding stale settlement; a newer optimistic update is pending")
        if self.on_success:
            self.on_success(final)
        return result

    def reset(self) -> None:
        """Drop optimistic data and show the last confirmed value."""
        self._sequence += 1
        self.error = None
        self._publish(self.confirmed, False)


class OptimisticList(OptimisticStore[List[dict]]):
    """Optimistic list of records keyed by ``id``, newest first."""

    def __init__(self, initial: Optional[List[dict]] = None, key: str = "id", **kwargs):
        super().__init__(list(initial or []), **kwargs)
        self.key = key

    def add(self, item: dict) -> List[dict]:
        return self.update_optimistic(lambda items: [item] + list(items or []))

    def update(self, item_id: str, changes: dict) -> List[dict]:
        return self.update_optimistic(lambda items: [
            {**item, **changes} if item.get(self.key) == item_id else item
            for item in items or []
        ])

    def remove(self, item_id: str) -> List[dict]:
        return self.update_optimistic(lambda items: [
            item for item in items or [] if item.get(self.key) != item_id
        ])
