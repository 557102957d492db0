"""
AI Service Port — the contract of the external recommendation/risk model.

Implementations may be slow, may raise, or may be down entirely. Callers
inside this package never talk to an AIService directly; they go through
ResilientAIService.
"""

import uuid
from typing import Protocol

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


class AIService(Protocol):
    """Protocol for pluggable AI backends."""

    async def recommend_discount(
        self, request: DiscountRecommendationRequest
    ) -> DiscountRecommendation:
        ...

    async def calculate_risk_score(self, request: RiskScoreRequest) -> AIRiskScore:
        ...

    async def explain_decision(self, request: ExplainabilityRequest) -> AIExplanation:
        ...

    async def train_model(self, request: ModelTrainingRequest) -> TrainingResult:
        ...

    async def is_available(self, company_id: uuid.UUID) -> bool:
        ...

    async def get_governance_settings(self, company_id: uuid.UUID) -> AIGovernanceSettings:
        ...
