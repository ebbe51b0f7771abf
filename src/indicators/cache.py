from datetime import datetime, timedelta
from typing import Callable, Optional

from .cache_policy import DEFAULT_TTL
from .models import CacheEntry, MetricResult
from .normalization import utc_now


class StalenessBoundedCache:
    """Last-known-good result per metric key.

    ``get`` is ungated: callers decide whether an entry is fresh enough via
    ``CacheEntry.is_fresh``. Writes overwrite, last write wins. There is no
    eviction; stale entries simply stop being selectable.
    """

    def __init__(
        self,
        default_ttl: timedelta = DEFAULT_TTL,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.default_ttl = default_ttl
        self.now = now
        self._entries: dict[str, CacheEntry] = {}

    def get(self, metric_key: str) -> Optional[CacheEntry]:
        return self._entries.get(metric_key)

    def put(
        self, metric_key: str, result: MetricResult, ttl: Optional[timedelta] = None
    ) -> CacheEntry:
        entry = CacheEntry(
            metric_key=metric_key,
            result=result,
            stored_at=self.now(),
            ttl=ttl if ttl is not None else self.default_ttl,
        )
        self._entries[metric_key] = entry
        return entry

    def __len__(self) -> int:
        return len(self._entries)
