"""
Resilient AI Service — every AI call goes through the same pipeline:

    cache lookup → circuit breaker → timeout-bounded AI call → fallback

- Cache hits (recommend/risk/explain) return at once; the breaker and the
  AI are not touched.
- An open breaker skips the AI and returns the fallback.
- Timeouts, exceptions and open breakers all end in the deterministic
  fallback. No AI failure reaches the caller; the outcome says where the
  value came from and why.
- Caller cancellation propagates unchanged.

One instance owns its cache, breakers and metrics. Create it at startup
and inject it; tests build isolated instances.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar

import structlog

from discountgov.ai.cache import EXPLAIN_TTL, RECOMMEND_TTL, RISK_TTL, ResponseCache, build_cache_key
from discountgov.ai.circuit_breaker import (
    FAILURE_THRESHOLD,
    RECOVERY_TIMEOUT_SECONDS,
    CircuitBreaker,
    CircuitSnapshot,
)
from discountgov.ai.fallback import RuleBasedFallback
from discountgov.ai.metrics import AIPerformanceMetrics, CallOutcome
from discountgov.ai.port import AIService
from discountgov.ai.schemas import (
    AIExplanation,
    AIRiskScore,
    DiscountRecommendation,
    DiscountRecommendationRequest,
    ExplainabilityRequest,
    ModelTrainingRequest,
    RiskScoreRequest,
    TrainingResult,
)
from discountgov.approval.governance import AIGovernanceSettings
from discountgov.config import Settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class AIOperation(str, Enum):
    RECOMMEND_DISCOUNT = "recommend_discount"
    CALCULATE_RISK_SCORE = "calculate_risk_score"
    EXPLAIN_DECISION = "explain_decision"
    TRAIN_MODEL = "train_model"
    IS_AVAILABLE = "is_available"
    GET_GOVERNANCE_SETTINGS = "get_governance_settings"


# Cached answers that depend on the trained model.
_MODEL_BACKED_OPERATIONS = (
    AIOperation.RECOMMEND_DISCOUNT,
    AIOperation.CALCULATE_RISK_SCORE,
    AIOperation.EXPLAIN_DECISION,
)


class OutcomeSource(str, Enum):
    AI = "ai"
    CACHE = "cache"
    FALLBACK = "fallback"


class FallbackReason(str, Enum):
    TIMEOUT = "timeout"
    CIRCUIT_OPEN = "circuit_open"
    ERROR = "error"


@dataclass(frozen=True)
class AIOutcome(Generic[T]):
    """Result of a wrapped AI call: a value plus where it came from."""
    value: T
    source: OutcomeSource
    fallback_reason: Optional[FallbackReason] = None
    detail: Optional[str] = None
    elapsed_ms: float = 0.0

    @property
    def is_fallback(self) -> bool:
        return self.source == OutcomeSource.FALLBACK


# ── Configuration ─────────────────────────────────────────────────────────

DEFAULT_TIMEOUTS: dict[AIOperation, float] = {
    AIOperation.RECOMMEND_DISCOUNT: 2.0,
    AIOperation.CALCULATE_RISK_SCORE: 2.0,
    AIOperation.EXPLAIN_DECISION: 2.0,
    AIOperation.TRAIN_MODEL: 30.0,
    AIOperation.IS_AVAILABLE: 0.5,
    AIOperation.GET_GOVERNANCE_SETTINGS: 2.0,
}

DEFAULT_TTLS: dict[AIOperation, int] = {
    AIOperation.RECOMMEND_DISCOUNT: RECOMMEND_TTL,
    AIOperation.CALCULATE_RISK_SCORE: RISK_TTL,
    AIOperation.EXPLAIN_DECISION: EXPLAIN_TTL,
}


@dataclass(frozen=True)
class ResilienceConfig:
    timeouts: dict[AIOperation, float] = field(default_factory=lambda: dict(DEFAULT_TIMEOUTS))
    cache_ttls: dict[AIOperation, int] = field(default_factory=lambda: dict(DEFAULT_TTLS))
    failure_threshold: int = FAILURE_THRESHOLD
    recovery_timeout: float = RECOVERY_TIMEOUT_SECONDS

    @classmethod
    def from_settings(cls, s: Settings) -> "ResilienceConfig":
        return cls(
            timeouts={
                AIOperation.RECOMMEND_DISCOUNT: s.ai_recommend_timeout,
                AIOperation.CALCULATE_RISK_SCORE: s.ai_risk_timeout,
                AIOperation.EXPLAIN_DECISION: s.ai_explain_timeout,
                AIOperation.TRAIN_MODEL: s.ai_train_timeout,
                AIOperation.IS_AVAILABLE: s.ai_availability_timeout,
                AIOperation.GET_GOVERNANCE_SETTINGS: s.ai_governance_timeout,
            },
            cache_ttls={
                AIOperation.RECOMMEND_DISCOUNT: s.cache_recommend_ttl,
                AIOperation.CALCULATE_RISK_SCORE: s.cache_risk_ttl,
                AIOperation.EXPLAIN_DECISION: s.cache_explain_ttl,
            },
            failure_threshold=s.breaker_failure_threshold,
            recovery_timeout=s.breaker_recovery_timeout,
        )


class ResilientAIService:
    """Timeout + cache + circuit breaker + fallback around an AIService."""

    def __init__(
        self,
        inner: AIService,
        config: Optional[ResilienceConfig] = None,
        fallback: Optional[RuleBasedFallback] = None,
        cache: Optional[ResponseCache] = None,
        metrics: Optional[AIPerformanceMetrics] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.inner = inner
        self.config = config or ResilienceConfig()
        self.fallback = fallback or RuleBasedFallback()
        self.cache = cache or ResponseCache(clock=clock)
        self.metrics = metrics or AIPerformanceMetrics()
        self.breakers: dict[AIOperation, CircuitBreaker] = {
            op: CircuitBreaker(
                name=op.value,
                failure_threshold=self.config.failure_threshold,
                recovery_timeout=self.config.recovery_timeout,
                clock=clock,
            )
            for op in AIOperation
        }

    @classmethod
    def from_settings(cls, inner: AIService, s: Settings) -> "ResilientAIService":
        """Wire cache, breakers, metrics and fallback from application settings."""
        return cls(
            inner,
            config=ResilienceConfig.from_settings(s),
            fallback=RuleBasedFallback(
                discount=s.fallback_discount_percentage,
                margin=s.fallback_margin_percentage,
                confidence=s.fallback_confidence,
            ),
            cache=ResponseCache(max_entries=s.cache_max_entries),
            metrics=AIPerformanceMetrics(max_samples=s.metrics_max_samples),
        )

    # ── Operations ───────────────────────────────────────────────────────

    async def recommend_discount(
        self, request: DiscountRecommendationRequest
    ) -> AIOutcome[DiscountRecommendation]:
        return await self._execute(
            AIOperation.RECOMMEND_DISCOUNT,
            lambda: self.inner.recommend_discount(request),
            lambda reason: self.fallback.recommend_discount(request, reason),
            cache_payload=request,
        )

    async def calculate_risk_score(self, request: RiskScoreRequest) -> AIOutcome[AIRiskScore]:
        return await self._execute(
            AIOperation.CALCULATE_RISK_SCORE,
            lambda: self.inner.calculate_risk_score(request),
            lambda reason: self.fallback.calculate_risk_score(request, reason),
            cache_payload=request,
        )

    async def explain_decision(
        self, request: ExplainabilityRequest
    ) -> AIOutcome[AIExplanation]:
        return await self._execute(
            AIOperation.EXPLAIN_DECISION,
            lambda: self.inner.explain_decision(request),
            lambda reason: self.fallback.explain_decision(request, reason),
            cache_payload=request,
        )

    async def train_model(self, request: ModelTrainingRequest) -> AIOutcome[TrainingResult]:
        """A successful training run makes cached model answers stale."""
        outcome = await self._execute(
            AIOperation.TRAIN_MODEL,
            lambda: self.inner.train_model(request),
            lambda reason: self.fallback.train_model(request, reason),
        )
        if outcome.source == OutcomeSource.AI and outcome.value.success:
            dropped = sum(
                self.cache.invalidate_operation(op.value) for op in _MODEL_BACKED_OPERATIONS
            )
            logger.info(
                "model_trained_cache_invalidated",
                company_id=str(request.company_id),
                model_version=outcome.value.model_version,
                dropped_entries=dropped,
            )
        return outcome

    async def is_available(self, company_id: uuid.UUID) -> AIOutcome[bool]:
        return await self._execute(
            AIOperation.IS_AVAILABLE,
            lambda: self.inner.is_available(company_id),
            lambda reason: False,
        )

    async def get_governance_settings(
        self, company_id: uuid.UUID
    ) -> AIOutcome[AIGovernanceSettings]:
        return await self._execute(
            AIOperation.GET_GOVERNANCE_SETTINGS,
            lambda: self.inner.get_governance_settings(company_id),
            lambda reason: self.fallback.governance_settings(),
        )

    # ── Pipeline ─────────────────────────────────────────────────────────

    async def _execute(
        self,
        op: AIOperation,
        call: Callable[[], Awaitable[T]],
        fallback: Callable[[str], T],
        cache_payload=None,
    ) -> AIOutcome[T]:
        started = time.perf_counter()
        name = op.value

        cache_key = None
        ttl = self.config.cache_ttls.get(op)
        if ttl and cache_payload is not None:
            cache_key = build_cache_key(name, cache_payload)
            cached = self.cache.get(cache_key)
            if cached is not None:
                self.metrics.record(name, CallOutcome.CACHE_HIT)
                return AIOutcome(cached, OutcomeSource.CACHE, elapsed_ms=self._elapsed(name, started))
            self.metrics.record(name, CallOutcome.CACHE_MISS)

        breaker = self.breakers[op]
        if not breaker.allow_request():
            self.metrics.record(name, CallOutcome.CIRCUIT_OPEN)
            return self._fall_back(
                op, fallback, FallbackReason.CIRCUIT_OPEN, "Circuit breaker open", started
            )

        timeout = self.config.timeouts[op]
        try:
            value = await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError:
            breaker.record_failure()
            self.metrics.record(name, CallOutcome.TIMEOUT)
            return self._fall_back(
                op, fallback, FallbackReason.TIMEOUT, f"AI timeout (>{timeout:g}s)", started
            )
        except asyncio.CancelledError:
            # Not the AI's fault; free a half-open trial slot without counting a failure.
            breaker.release_trial()
            raise
        except Exception as exc:
            breaker.record_failure()
            self.metrics.record_error(name, type(exc).__name__)
            return self._fall_back(
                op, fallback, FallbackReason.ERROR, f"AI error: {exc}", started
            )

        breaker.record_success()
        self.metrics.record(name, CallOutcome.SUCCESS)
        if cache_key is not None:
            self.cache.set(cache_key, value, ttl)
        return AIOutcome(value, OutcomeSource.AI, elapsed_ms=self._elapsed(name, started))

    def _fall_back(
        self,
        op: AIOperation,
        fallback: Callable[[str], T],
        reason: FallbackReason,
        detail: str,
        started: float,
    ) -> AIOutcome[T]:
        self.metrics.record_fallback(op.value, reason.value)
        logger.warning("ai_fallback_used", operation=op.value, reason=reason.value, detail=detail)
        value = fallback(detail)
        return AIOutcome(
            value,
            OutcomeSource.FALLBACK,
            fallback_reason=reason,
            detail=detail,
            elapsed_ms=self._elapsed(op.value, started),
        )

    def _elapsed(self, operation: str, started: float) -> float:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self.metrics.record_response_time(operation, elapsed_ms)
        return elapsed_ms

    # ── Introspection ────────────────────────────────────────────────────

    def breaker_states(self) -> dict[str, CircuitSnapshot]:
        return {op.value: b.snapshot() for op, b in self.breakers.items()}

    def reset(self) -> None:
        """Test hook: clear cache, breakers and metrics."""
        self.cache.clear()
        for breaker in self.breakers.values():
            breaker.reset()
        self.metrics.reset()
