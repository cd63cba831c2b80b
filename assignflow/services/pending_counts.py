from __future__ import annotations

import threading
import time
from typing import Callable, Protocol

from cachetools import TTLCache

from assignflow.domain.enums import Pattern, RECURRING_PATTERNS, TaskStatus
from assignflow.infra.repository import InstanceRepository

PENDING_STATUSES = (TaskStatus.PENDING, TaskStatus.OVERDUE)


class CountsCache(Protocol):
    def get(self, key: str) -> dict[str, int] | None: ...

    def set(self, key: str, value: dict[str, int]) -> None: ...

    def invalidate(self, key: str) -> None: ...


class TTLCountsCache:
    def __init__(
        self,
        ttl_seconds: float,
        maxsize: int = 1024,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, int] | None:
        with self._lock:
            return self._cache.get(key)

    def set(self, key: str, value: dict[str, int]) -> None:
        with self._lock:
            self._cache[key] = value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)


class PendingCountsService:
    def __init__(self, repo: InstanceRepository, cache: CountsCache) -> None:
        self._repo = repo
        self._cache = cache

    def get_counts(self, company_id: str) -> dict[str, int]:
        cached = self._cache.get(company_id)
        if cached is not None:
            return dict(cached)

        by_pattern = self._repo.count_by_pattern(company_id, PENDING_STATUSES)
        counts = {pattern.value: by_pattern.get(pattern.value, 0) for pattern in Pattern}
        counts["recurring"] = sum(counts[pattern.value] for pattern in RECURRING_PATTERNS)
        counts["total"] = counts["recurring"] + counts[Pattern.ONE_TIME.value]
        self._cache.set(company_id, counts)
        return dict(counts)

    def invalidate(self, company_id: str) -> None:
        self._cache.invalidate(company_id)
