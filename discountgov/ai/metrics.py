"""
AI Call Metrics.

Two views of the same events:
- Prometheus counters/histogram for scraping (process-wide)
- AIPerformanceMetrics, an owned in-process view with per-operation
  counters and response-time percentiles (P50/P95/P99)
"""

import threading
from collections import Counter as TallyCounter
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import structlog
from prometheus_client import REGISTRY as DEFAULT_REGISTRY
from prometheus_client import Counter, Histogram

logger = structlog.get_logger(__name__)

MAX_SAMPLES = 1000


# ============================================================================
# PROMETHEUS
# ============================================================================


def _safe_counter(name: str, description: str, labels: list) -> Counter:
    """Create counter, reusing if exists."""
    try:
        return Counter(name, description, labels)
    except ValueError:
        return DEFAULT_REGISTRY._names_to_collectors.get(
            name.replace("_total", ""), DEFAULT_REGISTRY._names_to_collectors.get(name)
        )


def _safe_histogram(name: str, description: str, labels: list, buckets) -> Histogram:
    """Create histogram, reusing if exists."""
    try:
        return Histogram(name, description, labels, buckets=buckets)
    except ValueError:
        return DEFAULT_REGISTRY._names_to_collectors.get(name)


AI_CALLS = _safe_counter(
    "discountgov_ai_calls_total",
    "AI port calls by operation and outcome",
    ["operation", "outcome"],
)
AI_CALL_DURATION = _safe_histogram(
    "discountgov_ai_call_duration_seconds",
    "Wall time of AI port calls, including fallback",
    ["operation"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 30.0),
)


# ============================================================================
# IN-PROCESS METRICS
# ============================================================================


class CallOutcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    FALLBACK = "fallback"
    CIRCUIT_OPEN = "circuit_open"


@dataclass
class _OperationStats:
    counts: TallyCounter = field(default_factory=TallyCounter)
    error_types: TallyCounter = field(default_factory=TallyCounter)
    fallback_reasons: TallyCounter = field(default_factory=TallyCounter)
    samples_ms: deque = field(default_factory=lambda: deque(maxlen=MAX_SAMPLES))


@dataclass(frozen=True)
class OperationStatistics:
    operation: str
    success: int
    error: int
    timeout: int
    cache_hit: int
    cache_miss: int
    fallback: int
    circuit_open: int
    average_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float
    error_types: dict[str, int]
    fallback_reasons: dict[str, int]

    @property
    def total_calls(self) -> int:
        return self.success + self.error + self.timeout + self.circuit_open + self.cache_hit

    @property
    def fallback_rate(self) -> float:
        return self.fallback / self.total_calls if self.total_calls else 0.0


def percentile(samples: list[float], pct: float) -> float:
    """Nearest-rank percentile; 0.0 for no samples."""
    if not samples:
        return 0.0
    ordered = sorted(samples)
    rank = max(1, -(-len(ordered) * pct // 100))  # ceil
    return ordered[int(rank) - 1]


class AIPerformanceMetrics:
    """Per-operation counters and response-time samples. Thread-safe."""

    def __init__(self, max_samples: int = MAX_SAMPLES):
        self.max_samples = max_samples
        self._lock = threading.Lock()
        self._ops: dict[str, _OperationStats] = defaultdict(self._new_stats)

    def _new_stats(self) -> _OperationStats:
        return _OperationStats(samples_ms=deque(maxlen=self.max_samples))

    def record(self, operation: str, outcome: CallOutcome) -> None:
        with self._lock:
            self._ops[operation].counts[outcome] += 1
        AI_CALLS.labels(operation=operation, outcome=outcome.value).inc()

    def record_error(self, operation: str, error_type: str) -> None:
        with self._lock:
            stats = self._ops[operation]
            stats.counts[CallOutcome.ERROR] += 1
            stats.error_types[error_type] += 1
        AI_CALLS.labels(operation=operation, outcome=CallOutcome.ERROR.value).inc()

    def record_fallback(self, operation: str, reason: str) -> None:
        with self._lock:
            stats = self._ops[operation]
            stats.counts[CallOutcome.FALLBACK] += 1
            stats.fallback_reasons[reason] += 1
        AI_CALLS.labels(operation=operation, outcome=CallOutcome.FALLBACK.value).inc()

    def record_response_time(self, operation: str, elapsed_ms: float) -> None:
        with self._lock:
            self._ops[operation].samples_ms.append(elapsed_ms)
        AI_CALL_DURATION.labels(operation=operation).observe(elapsed_ms / 1000.0)

    def count(self, operation: str, outcome: CallOutcome) -> int:
        with self._lock:
            stats = self._ops.get(operation)
            return stats.counts[outcome] if stats else 0

    def statistics(self, operation: str) -> Optional[OperationStatistics]:
        with self._lock:
            stats = self._ops.get(operation)
            if stats is None:
                return None
            samples = list(stats.samples_ms)
            counts = dict(stats.counts)
            error_types = dict(stats.error_types)
            fallback_reasons = dict(stats.fallback_reasons)

        return OperationStatistics(
            operation=operation,
            success=counts.get(CallOutcome.SUCCESS, 0),
            error=counts.get(CallOutcome.ERROR, 0),
            timeout=counts.get(CallOutcome.TIMEOUT, 0),
            cache_hit=counts.get(CallOutcome.CACHE_HIT, 0),
            cache_miss=counts.get(CallOutcome.CACHE_MISS, 0),
            fallback=counts.get(CallOutcome.FALLBACK, 0),
            circuit_open=counts.get(CallOutcome.CIRCUIT_OPEN, 0),
            average_ms=sum(samples) / len(samples) if samples else 0.0,
            p50_ms=percentile(samples, 50),
            p95_ms=percentile(samples, 95),
            p99_ms=percentile(samples, 99),
            error_types=error_types,
            fallback_reasons=fallback_reasons,
        )

    def all_statistics(self) -> dict[str, OperationStatistics]:
        with self._lock:
            operations = list(self._ops)
        return {op: self.statistics(op) for op in operations}

    def reset(self) -> None:
        with self._lock:
            self._ops.clear()
