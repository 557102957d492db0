"""
AI Response Cache — in-process TTL cache keyed by operation + payload hash.

Key format:  {operation}:{sha256 of canonical JSON payload}
TTLs:        recommend/risk 5 minutes, explain 15 minutes.

Thread-safe. No single-flight: two concurrent misses for the same key
both reach the AI.
"""

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)

RECOMMEND_TTL = 300  # 5 minutes
RISK_TTL = 300  # 5 minutes
EXPLAIN_TTL = 900  # 15 minutes
MAX_ENTRIES = 10_000


def build_cache_key(operation: str, payload: Any) -> str:
    """Stable key for an operation and its full request payload."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode()).hexdigest()
    return f"{operation}:{digest}"


@dataclass(frozen=True)
class CacheStatistics:
    hits: int
    misses: int
    entries: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ResponseCache:
    """TTL map with lazy expiry and oldest-first eviction."""

    def __init__(
        self,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, Any]] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[0] > self._clock():
                self._hits += 1
                return entry[1]
            if entry is not None:
                del self._entries[key]
            self._misses += 1
            return None

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict_one()
            self._entries[key] = (self._clock() + ttl_seconds, value)

    def _evict_one(self) -> None:
        now = self._clock()
        expired = [k for k, (exp, _) in self._entries.items() if exp <= now]
        if expired:
            for k in expired:
                del self._entries[k]
            self._evictions += len(expired)
            return
        # dicts keep insertion order; the first key is the oldest write
        oldest = next(iter(self._entries))
        del self._entries[oldest]
        self._evictions += 1

    def invalidate_operation(self, operation: str) -> int:
        prefix = f"{operation}:"
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
        logger.debug("cache_invalidated", operation=operation, count=len(keys))
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = self._evictions = 0

    def statistics(self) -> CacheStatistics:
        with self._lock:
            return CacheStatistics(
                hits=self._hits,
                misses=self._misses,
                entries=len(self._entries),
                evictions=self._evictions,
            )
