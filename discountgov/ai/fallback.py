"""
Rule-Based Fallback — what the AI wrapper returns when the model cannot.

- recommend: conservative fixed recommendation (5% discount, 20% margin, 0.5)
- risk: deterministic scoring primitives + aggregator
- explain: summary assembled from the risk score and its factors
- train: unsuccessful result carrying the reason
- governance: AI disabled, so nothing is auto-approved on bad settings data

Every value produced here has is_fallback=True (where the schema has it)
and names the fallback reason.
"""

from decimal import Decimal
from typing import Optional

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
from discountgov.domain.enums import RiskLevel
from discountgov.domain.values import to_decimal
from discountgov.scoring.aggregator import RiskAggregator, determine_risk_level

FALLBACK_DISCOUNT = Decimal("5")
FALLBACK_MARGIN = Decimal("20")
FALLBACK_CONFIDENCE = Decimal("0.5")


class RuleBasedFallback:
    """Deterministic stand-in for every AI operation."""

    def __init__(
        self,
        aggregator: Optional[RiskAggregator] = None,
        discount: Decimal = FALLBACK_DISCOUNT,
        margin: Decimal = FALLBACK_MARGIN,
        confidence: Decimal = FALLBACK_CONFIDENCE,
    ):
        self.aggregator = aggregator or RiskAggregator()
        self.discount = to_decimal(discount)
        self.margin = to_decimal(margin)
        self.confidence = to_decimal(confidence)

    def recommend_discount(
        self, request: DiscountRecommendationRequest, reason: str
    ) -> DiscountRecommendation:
        return DiscountRecommendation(
            recommended_discount_percentage=self.discount,
            expected_margin_percentage=self.margin,
            confidence=self.confidence,
            explanation=(
                f"Rule-based fallback used. Reason: {reason}. "
                "Recommending conservative discount."
            ),
            is_fallback=True,
        )

    def calculate_risk_score(self, request: RiskScoreRequest, reason: str) -> AIRiskScore:
        result = self.aggregator.calculate(
            requested_discount=request.requested_discount_percentage,
            estimated_margin=request.estimated_margin_percentage,
            customer=request.customer,
            customer_history=(
                request.customer_history.to_history() if request.customer_history else None
            ),
            salesperson_history=(
                request.salesperson_history.to_history() if request.salesperson_history else None
            ),
        )
        factors = [
            f"Requested discount: {request.requested_discount_percentage}%",
            *result.risk_factors(),
            f"Fallback reason: {reason}",
        ]
        return AIRiskScore(
            score=result.score,
            level=result.level,
            factors=factors,
            confidence=self.confidence,
            is_fallback=True,
        )

    def explain_decision(self, request: ExplainabilityRequest, reason: str) -> AIExplanation:
        level = determine_risk_level(request.risk_score)
        outcome = "auto-approved" if request.was_auto_approved else "sent for human review"
        details = [
            f"Requested discount: {request.requested_discount_percentage}%",
            f"Risk score: {request.risk_score:.1f} ({level.value})",
        ]
        if request.recommended_discount is not None:
            details.append(f"Recommended discount: {request.recommended_discount}%")
        details.extend(request.risk_factors)
        details.append(f"Fallback reason: {reason}")

        recommendations: list[str] = []
        if level.rank >= RiskLevel.HIGH.rank:
            recommendations.append("Review customer history and margin before approving")
        if (
            request.recommended_discount is not None
            and request.requested_discount_percentage > request.recommended_discount
        ):
            recommendations.append(
                f"Consider negotiating towards {request.recommended_discount}%"
            )
        if not recommendations:
            recommendations.append("No additional action required")

        return AIExplanation(
            summary=(
                f"Request {outcome} with {level.value} risk "
                f"(score {request.risk_score:.1f}) based on rule-based analysis"
            ),
            details=details,
            recommendations=recommendations,
            is_fallback=True,
        )

    def train_model(self, request: ModelTrainingRequest, reason: str) -> TrainingResult:
        return TrainingResult(
            success=False,
            message=f"Model training unavailable: {reason}",
            data_points_processed=0,
        )

    def governance_settings(self) -> AIGovernanceSettings:
        return AIGovernanceSettings.disabled()
