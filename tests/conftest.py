"""
Test fixtures for DiscountGov tests.

Provides:
- FakeAIService: scripted AI backend (per-operation failures, hangs, call counts)
- ManualClock / WallClock: deterministic monotonic and wall clocks
- A seeded in-memory world (company, users, customer, products) for workflows
"""

import asyncio
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from discountgov.ai.circuit_breaker import CircuitBreaker
from discountgov.ai.resilient import AIOperation, ResilienceConfig, ResilientAIService
from discountgov.ai.schemas import (
    AIExplanation,
    AIRiskScore,
    DiscountRecommendation,
    TrainingResult,
)
from discountgov.approval.governance import AIGovernanceSettings
from discountgov.domain.enums import CustomerClassification, UserRole
from discountgov.domain.models import Company, Customer, Product, User
from discountgov.repos.memory import in_memory_repositories
from discountgov.scoring.aggregator import determine_risk_level

FAST_TIMEOUTS = {op: 0.05 for op in AIOperation}


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class WallClock:
    """Timezone-aware wall clock for SLA arithmetic."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeAIService:
    """AIService double. Operations listed in `failing` raise, in `hanging` sleep."""

    def __init__(self):
        self.calls: Counter = Counter()
        self.failing: set[str] = set()
        self.hanging: set[str] = set()
        self.hang_seconds = 1.0
        self.available = True
        self.governance = AIGovernanceSettings.balanced()
        self.risk_score = Decimal("20")
        self.recommended_discount = Decimal("10")
        self.recommendation_confidence = Decimal("0.9")

    def fail_all(self) -> None:
        self.failing = {op.value for op in AIOperation}

    def recover(self) -> None:
        self.failing.clear()
        self.hanging.clear()

    async def _behave(self, operation: str) -> None:
        self.calls[operation] += 1
        if operation in self.hanging:
            await asyncio.sleep(self.hang_seconds)
        if operation in self.failing:
            raise RuntimeError(f"{operation} backend unavailable")

    async def recommend_discount(self, request):
        await self._behave("recommend_discount")
        return DiscountRecommendation(
            recommended_discount_percentage=self.recommended_discount,
            expected_margin_percentage=Decimal("30"),
            confidence=self.recommendation_confidence,
            explanation="Model recommendation",
        )

    async def calculate_risk_score(self, request):
        await self._behave("calculate_risk_score")
        return AIRiskScore(
            score=self.risk_score,
            level=determine_risk_level(self.risk_score),
            factors=["Model factor"],
            confidence=Decimal("0.9"),
        )

    async def explain_decision(self, request):
        await self._behave("explain_decision")
        return AIExplanation(summary="Model explanation", details=["detail"])

    async def train_model(self, request):
        await self._behave("train_model")
        return TrainingResult(
            success=True,
            message="trained",
            data_points_processed=len(request.training_data),
            model_version="2",
        )

    async def is_available(self, company_id):
        await self._behave("is_available")
        return self.available

    async def get_governance_settings(self, company_id):
        await self._behave("get_governance_settings")
        return self.governance


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def wall_clock() -> WallClock:
    return WallClock()


@pytest.fixture
def fake_ai() -> FakeAIService:
    return FakeAIService()


@pytest.fixture
def resilient_ai(fake_ai, clock) -> ResilientAIService:
    """Wrapper with short timeouts so hang tests stay fast."""
    return ResilientAIService(
        fake_ai,
        config=ResilienceConfig(timeouts=dict(FAST_TIMEOUTS)),
        clock=clock,
    )


@pytest.fixture
def breaker(clock) -> CircuitBreaker:
    return CircuitBreaker("test", failure_threshold=5, recovery_timeout=30.0, clock=clock)


# ── Seeded world ──────────────────────────────────────────────────────────


class World:
    """One company with its people, a customer and two products."""

    def __init__(self, repos, name: str = "Acme"):
        self.repos = repos
        self.company = Company(name=name)
        self.salesperson = User(company_id=self.company.id, name=f"{name} Seller")
        self.manager = User(
            company_id=self.company.id, name=f"{name} Manager", role=UserRole.MANAGER
        )
        self.customer = Customer(
            company_id=self.company.id,
            name=f"{name} Customer",
            classification=CustomerClassification.B,
        )
        # unit cost 60 → 10% discount leaves a 33.33% margin
        self.widget = Product(
            company_id=self.company.id,
            name="Widget",
            base_price=Decimal("100"),
            base_margin_percentage=Decimal("40"),
            category="hardware",
        )
        self.gadget = Product(
            company_id=self.company.id,
            name="Gadget",
            base_price=Decimal("50"),
            base_margin_percentage=Decimal("20"),
            category="accessories",
        )
        repos.companies.put(self.company)
        for user in (self.salesperson, self.manager):
            repos.users.put(user)
        repos.customers.put(self.customer)
        for product in (self.widget, self.gadget):
            repos.products.put(product)


@pytest.fixture
def repos():
    return in_memory_repositories()


@pytest.fixture
def world(repos) -> World:
    return World(repos)


@pytest.fixture
def other_world(repos) -> World:
    """A second tenant sharing the same repositories."""
    return World(repos, name="Globex")
