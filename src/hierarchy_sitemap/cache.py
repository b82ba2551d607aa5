"""In-memory cache with a get-or-compute contract."""

import logging
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional

logger = logging.getLogger(__name__)


class MemoryCache:
    """Least-recently-used cache for presentation contexts."""

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self._items: "OrderedDict[Hashable, Any]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        """Return the cached value for key, computing and storing it on a miss."""
        if key in self._items:
            self.hits += 1
            self._items.move_to_end(key)
            return self._items[key]

        self.misses += 1
        value = compute()
        self._items[key] = value

        if self.max_entries is not None and len(self._items) > self.max_entries:
            evicted, _ = self._items.popitem(last=False)
            logger.debug(f"Evicted cache entry {evicted}")

        return value

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._items
