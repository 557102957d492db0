"""
Shared workflow plumbing.

- Tenant-checked loaders for companies, users, customers, products and
  discount requests
- History derivation from past requests
- Risk scoring and recommendation through the resilient AI wrapper
- The auto-approval attempt shared by creation and re-evaluation, safety
  checks included
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Sequence

import structlog

from discountgov.ai.resilient import AIOutcome, ResilientAIService
from discountgov.ai.schemas import (
    AIExplanation,
    AIRiskScore,
    CustomerHistoryData,
    CustomerProfile,
    DiscountRecommendation,
    DiscountRecommendationRequest,
    ExplainabilityRequest,
    RecommendationItem,
    RiskScoreRequest,
    SalespersonHistoryData,
)
from discountgov.approval.gate import AutoApprovalEvaluation, AutoApprovalGate
from discountgov.approval.governance import AIGovernanceSettings
from discountgov.approval.safety import SafetyLimits, run_safety_checks
from discountgov.config import settings as app_settings
from discountgov.domain.enums import ApprovalDecision
from discountgov.domain.history import CustomerDiscountHistory, SalespersonDiscountHistory
from discountgov.domain.models import (
    Approval,
    BusinessRule,
    Company,
    Customer,
    DiscountRequest,
    Product,
    User,
    sla_seconds_since,
)
from discountgov.domain.values import utcnow
from discountgov.errors import (
    DomainValidationError,
    NotFoundError,
    PermissionDeniedError,
    TenantMismatchError,
)
from discountgov.guardrails.validator import GuardrailValidator, ValidationResult
from discountgov.repos.interfaces import Repositories
from discountgov.scoring.aggregator import RiskAggregator

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AutoApprovalAttempt:
    """What happened when the gate was consulted for one request."""
    evaluation: AutoApprovalEvaluation
    governance: AIOutcome[AIGovernanceSettings]
    approval: Optional[Approval] = None
    explanation: Optional[AIOutcome[AIExplanation]] = None

    @property
    def auto_approved(self) -> bool:
        return self.approval is not None


class WorkflowBase:
    """Dependencies and helpers common to every workflow."""

    def __init__(
        self,
        repos: Repositories,
        ai: ResilientAIService,
        validator: Optional[GuardrailValidator] = None,
        aggregator: Optional[RiskAggregator] = None,
        gate: Optional[AutoApprovalGate] = None,
        safety_limits: Optional[SafetyLimits] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repos = repos
        self.ai = ai
        self.validator = validator or GuardrailValidator()
        self.aggregator = aggregator or RiskAggregator()
        self.gate = gate or AutoApprovalGate()
        self.safety_limits = safety_limits or SafetyLimits.from_settings(app_settings)
        self.clock = clock

    # ── Loaders ──────────────────────────────────────────────────────────

    async def _company(self, company_id: uuid.UUID) -> Company:
        company = await self.repos.companies.get(company_id)
        if company is None:
            raise NotFoundError("Company", company_id)
        if not company.is_active:
            raise DomainValidationError(
                f"Company {company.name} is not active", field="company_id"
            )
        return company

    async def _user(self, company_id: uuid.UUID, user_id: uuid.UUID, entity: str = "User") -> User:
        user = await self.repos.users.get(user_id)
        if user is None:
            raise NotFoundError(entity, user_id)
        if user.company_id != company_id:
            raise TenantMismatchError(entity, user_id, company_id)
        return user

    async def _active_user(
        self, company_id: uuid.UUID, user_id: uuid.UUID, entity: str = "User"
    ) -> User:
        user = await self._user(company_id, user_id, entity)
        if not user.is_active:
            raise PermissionDeniedError(
                f"{entity} {user.name} is not active", details={"user_id": str(user_id)}
            )
        return user

    async def _reviewer(self, company_id: uuid.UUID, user_id: uuid.UUID) -> User:
        user = await self._active_user(company_id, user_id, "Reviewer")
        if not user.can_review_approvals:
            raise PermissionDeniedError(
                f"User {user.name} ({user.role.value}) cannot decide discount requests",
                details={"user_id": str(user_id), "role": user.role.value},
            )
        return user

    async def _customer(self, company_id: uuid.UUID, customer_id: uuid.UUID) -> Customer:
        customer = await self.repos.customers.get(customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        if customer.company_id != company_id:
            raise TenantMismatchError("Customer", customer_id, company_id)
        return customer

    async def _products(
        self, company_id: uuid.UUID, product_ids: Sequence[uuid.UUID], require_active: bool = True
    ) -> dict[uuid.UUID, Product]:
        products: dict[uuid.UUID, Product] = {}
        for product_id in dict.fromkeys(product_ids):
            product = await self.repos.products.get(product_id)
            if product is None:
                if require_active:
                    raise NotFoundError("Product", product_id)
                continue
            if product.company_id != company_id:
                raise TenantMismatchError("Product", product_id, company_id)
            if require_active and not product.is_active:
                raise DomainValidationError(
                    f"Product {product.name} is not active", field="items"
                )
            products[product_id] = product
        return products

    async def _discount_request(
        self, company_id: uuid.UUID, request_id: uuid.UUID
    ) -> DiscountRequest:
        request = await self.repos.discount_requests.get(request_id)
        if request is None:
            raise NotFoundError("Discount request", request_id)
        if request.company_id != company_id:
            raise TenantMismatchError("Discount request", request_id, company_id)
        return request

    async def _histories(
        self, request: DiscountRequest
    ) -> tuple[Optional[CustomerDiscountHistory], Optional[SalespersonDiscountHistory]]:
        """Past requests of the same customer and salesperson, excluding this one."""
        by_customer = await self.repos.discount_requests.list_by_customer(
            request.company_id, request.customer_id
        )
        by_salesperson = await self.repos.discount_requests.list_by_salesperson(
            request.company_id, request.salesperson_id
        )
        return (
            CustomerDiscountHistory.from_requests(r for r in by_customer if r.id != request.id),
            SalespersonDiscountHistory.from_requests(
                (r for r in by_salesperson if r.id != request.id), now=self.clock()
            ),
        )

    # ── AI calls ─────────────────────────────────────────────────────────

    async def _recommend(
        self,
        request: DiscountRequest,
        products: dict[uuid.UUID, Product],
        customer_history: Optional[CustomerDiscountHistory],
    ) -> AIOutcome[DiscountRecommendation]:
        items = [
            RecommendationItem(
                product_id=item.product_id,
                product_name=item.product_name,
                product_category=(
                    (products[item.product_id].category if item.product_id in products else None)
                    or item.category
                    or "Uncategorized"
                ),
                quantity=item.quantity,
                base_price=item.unit_base_price,
            )
            for item in request.items
        ]
        return await self.ai.recommend_discount(
            DiscountRecommendationRequest(
                company_id=request.company_id,
                customer_id=request.customer_id,
                salesperson_id=request.salesperson_id,
                items=items,
                requested_discount_percentage=request.requested_discount_percentage,
                customer_history=(
                    CustomerHistoryData.from_history(customer_history)
                    if customer_history
                    else None
                ),
            )
        )

    async def _score_risk(
        self,
        request: DiscountRequest,
        customer: Customer,
        customer_history: Optional[CustomerDiscountHistory],
        salesperson_history: Optional[SalespersonDiscountHistory],
    ) -> AIOutcome[AIRiskScore]:
        outcome = await self.ai.calculate_risk_score(
            RiskScoreRequest(
                company_id=request.company_id,
                customer_id=request.customer_id,
                salesperson_id=request.salesperson_id,
                requested_discount_percentage=request.requested_discount_percentage,
                discount_request_id=request.id,
                estimated_margin_percentage=request.estimated_margin_percentage,
                customer=CustomerProfile(
                    status=customer.status, classification=customer.classification
                ),
                customer_history=(
                    CustomerHistoryData.from_history(customer_history)
                    if customer_history
                    else None
                ),
                salesperson_history=(
                    SalespersonHistoryData.from_history(salesperson_history)
                    if salesperson_history
                    else None
                ),
            )
        )
        request.set_risk_score(outcome.value.score)
        return outcome

    # ── Auto-approval ────────────────────────────────────────────────────

    async def _attempt_auto_approval(
        self,
        request: DiscountRequest,
        customer: Customer,
        salesperson: User,
        risk: AIOutcome[AIRiskScore],
        guardrails: ValidationResult,
        rules: Sequence[BusinessRule],
        ai_confidence: Optional[Decimal],
    ) -> AutoApprovalAttempt:
        governance = await self.ai.get_governance_settings(request.company_id)
        settings = governance.value
        safety = run_safety_checks(request, customer, salesperson, self.safety_limits)
        if not safety.passed:
            logger.info(
                "auto_approval_safety_check_failed",
                request_id=str(request.id),
                failures=list(safety.failures),
            )

        evaluation = self.gate.evaluate(
            requested_discount=request.requested_discount_percentage,
            risk_score=risk.value.score,
            guardrails=guardrails,
            settings=settings,
            ai_confidence=ai_confidence,
            rules=rules,
            safety=safety,
        )

        approval: Optional[Approval] = None
        if evaluation.can_auto_approve:
            request.auto_approve_by_ai()
            approval = Approval.by_ai(
                discount_request_id=request.id,
                decision=ApprovalDecision.APPROVE,
                sla_seconds=sla_seconds_since(request.created_at, self.clock()),
                justification=evaluation.approval_reason,
                metadata={
                    "risk_score": str(evaluation.risk_score),
                    "risk_level": risk.value.level.value,
                    "risk_source": risk.source.value,
                    "ai_confidence": (
                        None if ai_confidence is None else str(ai_confidence)
                    ),
                    "max_risk_score_threshold": str(evaluation.max_risk_score_threshold),
                    "min_ai_confidence_threshold": str(evaluation.min_ai_confidence_threshold),
                    "max_discount_threshold": str(evaluation.max_discount_threshold),
                    "autonomy_level": settings.autonomy_level,
                    "safety_checks": "passed",
                },
            )
            await self.repos.discount_requests.update(request)
            await self.repos.approvals.add(approval)
            logger.info(
                "discount_request_auto_approved",
                request_id=str(request.id),
                risk_score=str(evaluation.risk_score),
                sla_seconds=approval.sla_seconds,
            )

        explanation = None
        if settings.enable_explainability and settings.ai_enabled:
            explanation = await self.ai.explain_decision(
                ExplainabilityRequest(
                    company_id=request.company_id,
                    discount_request_id=request.id,
                    requested_discount_percentage=request.requested_discount_percentage,
                    risk_score=risk.value.score,
                    was_auto_approved=evaluation.can_auto_approve,
                    risk_factors=list(risk.value.factors),
                )
            )

        return AutoApprovalAttempt(
            evaluation=evaluation,
            governance=governance,
            approval=approval,
            explanation=explanation,
        )
