"""
Domain entities — companies, users, customers, products, discount requests,
business rules, approvals and model training runs.

DiscountRequest is the aggregate root. Its status only changes through the
transition methods below; every transition out of UNDER_ANALYSIS is one-way.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union

from discountgov.domain.enums import (
    ApprovalDecision,
    ApprovalSource,
    CompanyStatus,
    CustomerClassification,
    CustomerStatus,
    DiscountRequestStatus,
    ProductStatus,
    RuleScope,
    RuleType,
    TrainingType,
    UserRole,
    UserStatus,
)
from discountgov.domain.values import HUNDRED, ZERO, Numeric, is_percentage, to_decimal, utcnow
from discountgov.errors import DomainValidationError, InvalidTransitionError


# ── Tenancy & people ──────────────────────────────────────────────────────


@dataclass
class Company:
    name: str
    status: CompanyStatus = CompanyStatus.ACTIVE
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def is_active(self) -> bool:
        return self.status == CompanyStatus.ACTIVE


@dataclass
class User:
    company_id: uuid.UUID
    name: str
    role: UserRole = UserRole.SALESPERSON
    status: UserStatus = UserStatus.ACTIVE
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @property
    def can_review_approvals(self) -> bool:
        return self.role in (UserRole.MANAGER, UserRole.ADMIN)


@dataclass
class Customer:
    company_id: uuid.UUID
    name: str
    status: CustomerStatus = CustomerStatus.ACTIVE
    classification: CustomerClassification = CustomerClassification.UNCLASSIFIED
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def is_active(self) -> bool:
        return self.status == CustomerStatus.ACTIVE

    @property
    def is_prospect(self) -> bool:
        return self.status == CustomerStatus.PROSPECT

    @property
    def is_blocked(self) -> bool:
        return self.status == CustomerStatus.BLOCKED

    @property
    def can_receive_discount_requests(self) -> bool:
        return self.status in (CustomerStatus.ACTIVE, CustomerStatus.PROSPECT)


@dataclass
class Product:
    company_id: uuid.UUID
    name: str
    base_price: Decimal
    base_margin_percentage: Decimal
    category: Optional[str] = None
    status: ProductStatus = ProductStatus.ACTIVE
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        self.base_price = to_decimal(self.base_price)
        self.base_margin_percentage = to_decimal(self.base_margin_percentage)
        if self.base_price < ZERO:
            raise DomainValidationError("Base price cannot be negative", field="base_price")
        if not is_percentage(self.base_margin_percentage):
            raise DomainValidationError(
                "Base margin must be between 0 and 100", field="base_margin_percentage"
            )

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE

    @property
    def unit_cost(self) -> Decimal:
        return self.base_price * (1 - self.base_margin_percentage / HUNDRED)


# ── Discount request ──────────────────────────────────────────────────────


@dataclass
class DiscountRequestItem:
    """One line of a discount request."""

    product_id: uuid.UUID
    product_name: str
    quantity: int
    unit_base_price: Decimal
    discount_percentage: Decimal
    category: Optional[str] = None

    def __post_init__(self):
        self.unit_base_price = to_decimal(self.unit_base_price)
        self.discount_percentage = to_decimal(self.discount_percentage)
        if self.quantity <= 0:
            raise DomainValidationError("Quantity must be greater than zero", field="quantity")
        if self.unit_base_price < ZERO:
            raise DomainValidationError("Unit price cannot be negative", field="unit_base_price")
        if not is_percentage(self.discount_percentage):
            raise DomainValidationError(
                "Item discount must be between 0 and 100", field="discount_percentage"
            )

    @property
    def unit_final_price(self) -> Decimal:
        return self.unit_base_price * (1 - self.discount_percentage / HUNDRED)

    @property
    def total_base_price(self) -> Decimal:
        return self.unit_base_price * self.quantity

    @property
    def total_final_price(self) -> Decimal:
        return self.unit_final_price * self.quantity

    @property
    def total_discount_amount(self) -> Decimal:
        return self.total_base_price - self.total_final_price


_DECIDED_BY_ACTION = {
    "approve": DiscountRequestStatus.APPROVED,
    "reject": DiscountRequestStatus.REJECTED,
    "request_adjustment": DiscountRequestStatus.ADJUSTMENT_REQUESTED,
    "auto_approve_by_ai": DiscountRequestStatus.AUTO_APPROVED_BY_AI,
}


@dataclass
class DiscountRequest:
    """
    Aggregate root for a salesperson's discount request.

    Lifecycle: UNDER_ANALYSIS → {APPROVED, REJECTED, ADJUSTMENT_REQUESTED,
    AUTO_APPROVED_BY_AI}. A manager may later override an AI approval into
    REJECTED or ADJUSTMENT_REQUESTED.
    """

    company_id: uuid.UUID
    customer_id: uuid.UUID
    salesperson_id: uuid.UUID
    items: list[DiscountRequestItem]
    requested_discount_percentage: Decimal
    estimated_margin_percentage: Optional[Decimal] = None
    risk_score: Optional[Decimal] = None
    status: DiscountRequestStatus = DiscountRequestStatus.UNDER_ANALYSIS
    comments: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.items:
            raise DomainValidationError("A discount request needs at least one item", field="items")
        self.requested_discount_percentage = to_decimal(self.requested_discount_percentage)
        if not is_percentage(self.requested_discount_percentage):
            raise DomainValidationError(
                "Requested discount must be between 0 and 100",
                field="requested_discount_percentage",
            )
        if self.estimated_margin_percentage is not None:
            self.set_estimated_margin(self.estimated_margin_percentage)
        if self.risk_score is not None:
            self.set_risk_score(self.risk_score)

    # ── Derived values ───────────────────────────────────────────────────

    @property
    def total_base_price(self) -> Decimal:
        return sum((i.total_base_price for i in self.items), ZERO)

    @property
    def total_final_price(self) -> Decimal:
        return sum((i.total_final_price for i in self.items), ZERO)

    @property
    def is_approved(self) -> bool:
        return self.status in (
            DiscountRequestStatus.APPROVED,
            DiscountRequestStatus.AUTO_APPROVED_BY_AI,
        )

    @property
    def is_rejected(self) -> bool:
        return self.status == DiscountRequestStatus.REJECTED

    @property
    def is_under_analysis(self) -> bool:
        return self.status == DiscountRequestStatus.UNDER_ANALYSIS

    @property
    def can_be_modified(self) -> bool:
        return self.status in (
            DiscountRequestStatus.UNDER_ANALYSIS,
            DiscountRequestStatus.ADJUSTMENT_REQUESTED,
        )

    # ── Mutators ─────────────────────────────────────────────────────────

    def set_risk_score(self, score: Numeric) -> None:
        score = to_decimal(score)
        if not is_percentage(score):
            raise DomainValidationError("Risk score must be between 0 and 100", field="risk_score")
        self.risk_score = score
        self.updated_at = utcnow()

    def set_estimated_margin(self, margin: Optional[Numeric]) -> None:
        self.estimated_margin_percentage = None if margin is None else to_decimal(margin)
        self.updated_at = utcnow()

    # ── Transitions ──────────────────────────────────────────────────────

    def approve(self) -> None:
        self._decide("approve")

    def reject(self) -> None:
        self._decide("reject")

    def request_adjustment(self) -> None:
        self._decide("request_adjustment")

    def auto_approve_by_ai(self) -> None:
        self._decide("auto_approve_by_ai")

    def override_auto_approval(self, decision: ApprovalDecision) -> None:
        """Manager override of an AI approval: reject or send back."""
        if self.status != DiscountRequestStatus.AUTO_APPROVED_BY_AI:
            raise InvalidTransitionError(self.status.value, "override auto-approval of")
        if decision == ApprovalDecision.REJECT:
            self.status = DiscountRequestStatus.REJECTED
        elif decision == ApprovalDecision.REQUEST_ADJUSTMENT:
            self.status = DiscountRequestStatus.ADJUSTMENT_REQUESTED
        else:
            raise DomainValidationError(
                "An AI approval can only be overridden with reject or request_adjustment",
                field="decision",
            )
        self.updated_at = utcnow()

    def _decide(self, action: str) -> None:
        if self.status != DiscountRequestStatus.UNDER_ANALYSIS:
            raise InvalidTransitionError(self.status.value, action.replace("_", " "))
        self.status = _DECIDED_BY_ACTION[action]
        self.updated_at = utcnow()


# ── Configuration ─────────────────────────────────────────────────────────


@dataclass
class BusinessRule:
    """
    Admin-configured guardrail.

    `parameters` is the raw payload as stored, either a JSON string or a
    mapping; it is decoded into a typed schema by discountgov.guardrails.params.
    """

    company_id: uuid.UUID
    name: str
    rule_type: RuleType
    scope: RuleScope = RuleScope.GLOBAL
    parameters: Union[str, dict[str, Any]] = "{}"
    target_identifier: Optional[str] = None
    is_active: bool = True
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def applies_to_target(self, identifier: Any) -> bool:
        if self.scope == RuleScope.GLOBAL:
            return True
        if self.target_identifier is None or identifier is None:
            return False
        return str(identifier).strip().lower() == self.target_identifier.strip().lower()


# ── Approval ──────────────────────────────────────────────────────────────


@dataclass
class Approval:
    """
    A decision taken on a discount request, by a person or by the AI.

    Justification is mandatory when a person rejects.
    """

    discount_request_id: uuid.UUID
    decision: ApprovalDecision
    source: ApprovalSource
    sla_seconds: int
    approver_id: Optional[uuid.UUID] = None
    justification: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    decided_at: datetime = field(default_factory=utcnow)
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        if self.sla_seconds < 0:
            raise DomainValidationError("SLA time cannot be negative", field="sla_seconds")

    @classmethod
    def by_human(
        cls,
        discount_request_id: uuid.UUID,
        approver_id: uuid.UUID,
        decision: ApprovalDecision,
        sla_seconds: int,
        justification: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "Approval":
        if decision == ApprovalDecision.REJECT and not (justification or "").strip():
            raise DomainValidationError(
                "Justification is mandatory when rejecting a discount request",
                field="justification",
            )
        return cls(
            discount_request_id=discount_request_id,
            decision=decision,
            source=ApprovalSource.HUMAN,
            sla_seconds=sla_seconds,
            approver_id=approver_id,
            justification=justification,
            metadata=metadata or {},
        )

    @classmethod
    def by_ai(
        cls,
        discount_request_id: uuid.UUID,
        decision: ApprovalDecision,
        sla_seconds: int,
        justification: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "Approval":
        return cls(
            discount_request_id=discount_request_id,
            decision=decision,
            source=ApprovalSource.AI,
            sla_seconds=sla_seconds,
            justification=justification,
            metadata=metadata or {},
        )

    @property
    def is_ai_approval(self) -> bool:
        return self.source == ApprovalSource.AI

    @property
    def approver_identifier(self) -> str:
        return str(self.approver_id) if self.approver_id else "AI"

    @property
    def formatted_sla(self) -> str:
        s = self.sla_seconds
        days, rem = divmod(s, 86_400)
        hours, rem = divmod(rem, 3_600)
        minutes, seconds = divmod(rem, 60)
        if days:
            return f"{days}d {hours}h"
        if hours:
            return f"{hours}h {minutes}m"
        if minutes:
            return f"{minutes}m {seconds}s"
        return f"{seconds}s"

    def meets_sla(self, threshold_seconds: int) -> bool:
        return self.sla_seconds <= threshold_seconds

    def metadata_json(self) -> str:
        return json.dumps(self.metadata, default=str, sort_keys=True)


def sla_seconds_since(created_at: datetime, now: Optional[datetime] = None) -> int:
    """Elapsed whole seconds from request creation to a decision."""
    now = now or utcnow()
    return max(0, int((now - created_at).total_seconds()))


# ── Learning ──────────────────────────────────────────────────────────────


@dataclass
class TrainingRun:
    """A completed model training run; the next incremental run starts after it."""

    company_id: uuid.UUID
    training_type: TrainingType
    data_points: int
    trained_at: datetime
    model_version: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
