"""
AI Port Schemas — request/response models exchanged with the AI service.

Responses are frozen so a cached instance can be handed to many callers.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from discountgov.domain.enums import (
    CustomerClassification,
    CustomerStatus,
    RiskLevel,
    TrainingType,
)
from discountgov.domain.history import CustomerDiscountHistory, SalespersonDiscountHistory
from discountgov.domain.values import utcnow


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Shared snapshots ──────────────────────────────────────────────────────


class CustomerHistoryData(_Frozen):
    total_requests: int = Field(ge=0)
    approved_requests: int = Field(ge=0)
    rejected_requests: int = Field(ge=0)
    average_approved_discount: Decimal = Decimal("0")
    max_approved_discount: Decimal = Decimal("0")
    has_payment_delays: bool = False
    has_defaults: bool = False

    @classmethod
    def from_history(cls, history: CustomerDiscountHistory) -> "CustomerHistoryData":
        return cls(
            total_requests=history.total_requests,
            approved_requests=history.approved_requests,
            rejected_requests=history.rejected_requests,
            average_approved_discount=history.average_approved_discount,
            max_approved_discount=history.max_approved_discount,
            has_payment_delays=history.has_payment_delays,
            has_defaults=history.has_defaults,
        )

    def to_history(self) -> CustomerDiscountHistory:
        return CustomerDiscountHistory(**self.model_dump())


class SalespersonHistoryData(_Frozen):
    total_requests: int = Field(ge=0)
    approved_requests: int = Field(ge=0)
    average_requested_discount: Decimal = Decimal("0")
    win_rate: Optional[Decimal] = None
    recent_rejection_trend: Decimal = Decimal("0")

    @classmethod
    def from_history(cls, history: SalespersonDiscountHistory) -> "SalespersonHistoryData":
        return cls(
            total_requests=history.total_requests,
            approved_requests=history.approved_requests,
            average_requested_discount=history.average_requested_discount,
            win_rate=history.win_rate,
            recent_rejection_trend=history.recent_rejection_trend,
        )

    def to_history(self) -> SalespersonDiscountHistory:
        return SalespersonDiscountHistory(**self.model_dump())


class CustomerProfile(_Frozen):
    """The customer attributes the risk model needs."""
    status: CustomerStatus = CustomerStatus.ACTIVE
    classification: CustomerClassification = CustomerClassification.UNCLASSIFIED


# ── Recommend ─────────────────────────────────────────────────────────────


class RecommendationItem(_Frozen):
    product_id: uuid.UUID
    product_name: str
    product_category: str = "Uncategorized"
    quantity: int = Field(gt=0)
    base_price: Decimal = Field(ge=0)
    currency: str = "USD"


class DiscountRecommendationRequest(_Frozen):
    company_id: uuid.UUID
    customer_id: uuid.UUID
    salesperson_id: uuid.UUID
    items: list[RecommendationItem]
    requested_discount_percentage: Optional[Decimal] = None
    customer_history: Optional[CustomerHistoryData] = None


class DiscountRecommendation(_Frozen):
    recommended_discount_percentage: Decimal
    expected_margin_percentage: Decimal
    confidence: Decimal = Field(ge=0, le=1)
    explanation: str = ""
    is_fallback: bool = False
    recommended_at: datetime = Field(default_factory=utcnow)


# ── Risk ──────────────────────────────────────────────────────────────────


class RiskScoreRequest(_Frozen):
    company_id: uuid.UUID
    customer_id: uuid.UUID
    salesperson_id: uuid.UUID
    requested_discount_percentage: Decimal = Field(ge=0, le=100)
    discount_request_id: Optional[uuid.UUID] = None
    estimated_margin_percentage: Optional[Decimal] = None
    customer: CustomerProfile = Field(default_factory=CustomerProfile)
    customer_history: Optional[CustomerHistoryData] = None
    salesperson_history: Optional[SalespersonHistoryData] = None


class AIRiskScore(_Frozen):
    score: Decimal = Field(ge=0, le=100)
    level: RiskLevel
    factors: list[str] = Field(default_factory=list)
    confidence: Decimal = Field(ge=0, le=1)
    is_fallback: bool = False
    calculated_at: datetime = Field(default_factory=utcnow)


# ── Explain ───────────────────────────────────────────────────────────────


class ExplainabilityRequest(_Frozen):
    company_id: uuid.UUID
    discount_request_id: uuid.UUID
    requested_discount_percentage: Decimal
    recommended_discount: Optional[Decimal] = None
    risk_score: Decimal
    was_auto_approved: bool = False
    risk_factors: list[str] = Field(default_factory=list)


class AIExplanation(_Frozen):
    summary: str
    details: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    is_fallback: bool = False
    generated_at: datetime = Field(default_factory=utcnow)


# ── Train ─────────────────────────────────────────────────────────────────


class TrainingDataPoint(_Frozen):
    discount_request_id: uuid.UUID
    requested_discount: Decimal
    final_margin: Optional[Decimal] = None
    decision: str
    decision_source: str
    sale_outcome: Optional[bool] = None
    decision_date: datetime


class ModelTrainingRequest(_Frozen):
    company_id: uuid.UUID
    training_data: list[TrainingDataPoint] = Field(default_factory=list)
    training_type: TrainingType = TrainingType.INCREMENTAL


class TrainingResult(_Frozen):
    success: bool
    message: str = ""
    data_points_processed: int = 0
    model_version: Optional[str] = None
    trained_at: datetime = Field(default_factory=utcnow)
