"""
Risk Aggregator — weighted sum of the four sub-scores.

    score = 0.25 × customer + 0.35 × deviation + 0.15 × salesperson + 0.25 × margin

Clamped to [0, 100] and mapped to a RiskLevel:
    < 30 low, < 60 medium, < 80 high, otherwise very_high.

Never raises for in-range inputs; the breakdown is kept for explainability.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Optional, Sequence

import structlog

from discountgov.domain.enums import RiskLevel
from discountgov.domain.history import CustomerDiscountHistory, SalespersonDiscountHistory
from discountgov.domain.models import DiscountRequestItem
from discountgov.domain.values import ZERO, Numeric, clamp, to_decimal
from discountgov.scoring.primitives import (
    CustomerLike,
    customer_history_risk,
    discount_deviation_risk,
    item_margin_impact_risk,
    margin_impact_risk,
    salesperson_behavior_risk,
)

logger = structlog.get_logger(__name__)


# ── Configuration ─────────────────────────────────────────────────────────

LOW_RISK_BELOW = Decimal("30")
MEDIUM_RISK_BELOW = Decimal("60")
HIGH_RISK_BELOW = Decimal("80")
ELEVATED_FACTOR = Decimal("60")


@dataclass(frozen=True)
class RiskWeights:
    """Weight vector; must sum to exactly 1."""
    customer_history: Decimal = Decimal("0.25")
    discount_deviation: Decimal = Decimal("0.35")
    salesperson_behavior: Decimal = Decimal("0.15")
    margin_impact: Decimal = Decimal("0.25")

    def __post_init__(self):
        if self.total != Decimal("1"):
            raise ValueError(f"Risk weights must sum to 1.0, got {self.total}")

    @property
    def total(self) -> Decimal:
        return (
            self.customer_history
            + self.discount_deviation
            + self.salesperson_behavior
            + self.margin_impact
        )

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "customer_history": self.customer_history,
            "discount_deviation": self.discount_deviation,
            "salesperson_behavior": self.salesperson_behavior,
            "margin_impact": self.margin_impact,
        }


DEFAULT_WEIGHTS = RiskWeights()


@dataclass(frozen=True)
class RiskScoreBreakdown:
    """The four sub-scores and the weights they were combined with."""
    customer_history_risk: Decimal
    discount_deviation_risk: Decimal
    salesperson_behavior_risk: Decimal
    margin_impact_risk: Decimal
    weights: RiskWeights = field(default_factory=RiskWeights)

    def sub_scores(self) -> dict[str, Decimal]:
        return {
            "customer_history": self.customer_history_risk,
            "discount_deviation": self.discount_deviation_risk,
            "salesperson_behavior": self.salesperson_behavior_risk,
            "margin_impact": self.margin_impact_risk,
        }

    def weighted_components(self) -> dict[str, Decimal]:
        weights = self.weights.as_dict()
        return {name: score * weights[name] for name, score in self.sub_scores().items()}


@dataclass(frozen=True)
class RiskScoreResult:
    score: Decimal
    level: RiskLevel
    breakdown: RiskScoreBreakdown

    def risk_factors(self) -> list[str]:
        """Readable list of the sub-scores at or above the elevated mark."""
        labels = {
            "customer_history": "Customer history",
            "discount_deviation": "Discount deviation from history",
            "salesperson_behavior": "Salesperson behavior",
            "margin_impact": "Margin impact",
        }
        return [
            f"{labels[name]} risk {score:.1f}"
            for name, score in self.breakdown.sub_scores().items()
            if score >= ELEVATED_FACTOR
        ]


def determine_risk_level(score: Numeric) -> RiskLevel:
    score = to_decimal(score)
    if score < LOW_RISK_BELOW:
        return RiskLevel.LOW
    if score < MEDIUM_RISK_BELOW:
        return RiskLevel.MEDIUM
    if score < HIGH_RISK_BELOW:
        return RiskLevel.HIGH
    return RiskLevel.VERY_HIGH


class RiskAggregator:
    """Combine sub-scores into a single risk score."""

    def __init__(self, weights: Optional[RiskWeights] = None):
        self.weights = weights or DEFAULT_WEIGHTS

    def aggregate(
        self,
        customer_history: Numeric,
        discount_deviation: Numeric,
        salesperson_behavior: Numeric,
        margin_impact: Numeric,
    ) -> RiskScoreResult:
        breakdown = RiskScoreBreakdown(
            customer_history_risk=clamp(to_decimal(customer_history)),
            discount_deviation_risk=clamp(to_decimal(discount_deviation)),
            salesperson_behavior_risk=clamp(to_decimal(salesperson_behavior)),
            margin_impact_risk=clamp(to_decimal(margin_impact)),
            weights=self.weights,
        )
        score = clamp(sum(breakdown.weighted_components().values(), ZERO))
        return RiskScoreResult(
            score=score,
            level=determine_risk_level(score),
            breakdown=breakdown,
        )

    def calculate(
        self,
        requested_discount: Numeric,
        estimated_margin: Optional[Numeric] = None,
        customer: Optional[CustomerLike] = None,
        customer_history: Optional[CustomerDiscountHistory] = None,
        salesperson_history: Optional[SalespersonDiscountHistory] = None,
        items: Optional[Sequence[DiscountRequestItem]] = None,
        product_costs: Optional[Mapping] = None,
    ) -> RiskScoreResult:
        """Run every sub-score and aggregate them."""
        if items and product_costs:
            margin_risk = item_margin_impact_risk(items, product_costs)
        else:
            margin_risk = margin_impact_risk(estimated_margin)

        result = self.aggregate(
            customer_history=customer_history_risk(customer, customer_history),
            discount_deviation=discount_deviation_risk(requested_discount, customer_history),
            salesperson_behavior=salesperson_behavior_risk(salesperson_history),
            margin_impact=margin_risk,
        )
        logger.debug(
            "risk_score_calculated",
            score=str(result.score),
            level=result.level.value,
            sub_scores={k: str(v) for k, v in result.breakdown.sub_scores().items()},
        )
        return result
