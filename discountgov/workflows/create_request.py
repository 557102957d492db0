"""
Create Discount Request workflow.

Steps:
1. Load company, salesperson, customer and products (tenant-checked)
2. Build the items; an item without its own discount gets the overall one
3. Estimate the margin from product costs
4. Ask the AI for a recommendation (optional, only when it reports itself available)
5. Validate against business rules; blocking errors abort creation
6. Derive history and score risk (AI, rule-based fallback)
7. Persist, then try auto-approval with safety checks (optional)
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

import structlog

from discountgov.ai.resilient import AIOutcome
from discountgov.ai.schemas import AIRiskScore, DiscountRecommendation
from discountgov.domain.margin import estimated_margin
from discountgov.domain.models import DiscountRequest, DiscountRequestItem
from discountgov.domain.values import Numeric, to_decimal
from discountgov.errors import DomainValidationError, GuardrailViolationError
from discountgov.workflows.base import AutoApprovalAttempt, WorkflowBase

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CreateItem:
    product_id: uuid.UUID
    quantity: int
    discount_percentage: Optional[Numeric] = None


@dataclass(frozen=True)
class CreateDiscountRequestCommand:
    company_id: uuid.UUID
    salesperson_id: uuid.UUID
    customer_id: uuid.UUID
    items: list[CreateItem]
    requested_discount_percentage: Numeric
    comments: Optional[str] = None
    request_recommendation: bool = True
    try_auto_approve: bool = True


@dataclass
class CreateDiscountRequestResult:
    request: DiscountRequest
    risk: AIOutcome[AIRiskScore]
    warnings: list[str] = field(default_factory=list)
    recommendation: Optional[AIOutcome[DiscountRecommendation]] = None
    auto_approval: Optional[AutoApprovalAttempt] = None
    next_steps: list[str] = field(default_factory=list)

    @property
    def auto_approved(self) -> bool:
        return self.auto_approval is not None and self.auto_approval.auto_approved


class CreateDiscountRequestWorkflow(WorkflowBase):
    """Register a salesperson's discount request and route it."""

    async def execute(self, command: CreateDiscountRequestCommand) -> CreateDiscountRequestResult:
        if not command.items:
            raise DomainValidationError("A discount request needs at least one item", field="items")

        await self._company(command.company_id)
        salesperson = await self._active_user(
            command.company_id, command.salesperson_id, "Salesperson"
        )
        customer = await self._customer(command.company_id, command.customer_id)
        if customer.is_blocked:
            raise DomainValidationError(
                f"Customer {customer.name} is blocked and cannot receive discounts",
                field="customer_id",
            )
        products = await self._products(
            command.company_id, [i.product_id for i in command.items]
        )

        overall = to_decimal(command.requested_discount_percentage)
        items = [
            DiscountRequestItem(
                product_id=line.product_id,
                product_name=products[line.product_id].name,
                quantity=line.quantity,
                unit_base_price=products[line.product_id].base_price,
                discount_percentage=(
                    overall if line.discount_percentage is None
                    else to_decimal(line.discount_percentage)
                ),
                category=products[line.product_id].category,
            )
            for line in command.items
        ]
        request = DiscountRequest(
            company_id=command.company_id,
            customer_id=customer.id,
            salesperson_id=salesperson.id,
            items=items,
            requested_discount_percentage=overall,
            comments=command.comments,
            created_at=self.clock(),
        )
        request.set_estimated_margin(estimated_margin(items, products))

        customer_history, salesperson_history = await self._histories(request)

        recommendation = None
        if command.request_recommendation:
            available = await self.ai.is_available(command.company_id)
            if available.value:
                recommendation = await self._recommend(request, products, customer_history)

        rules = await self.repos.business_rules.list_active(command.company_id)
        product_costs = await self.repos.products.get_unit_costs(list(products))
        guardrails = self.validator.validate(
            request, rules, customer=customer, salesperson=salesperson, product_costs=product_costs
        )
        if not guardrails.is_valid:
            raise GuardrailViolationError(guardrails)

        risk = await self._score_risk(request, customer, customer_history, salesperson_history)

        await self.repos.discount_requests.add(request)
        logger.info(
            "discount_request_created",
            request_id=str(request.id),
            company_id=str(request.company_id),
            discount=str(request.requested_discount_percentage),
            risk_score=str(request.risk_score),
            risk_source=risk.source.value,
        )

        attempt = None
        if command.try_auto_approve:
            confidence: Optional[Decimal] = (
                recommendation.value.confidence if recommendation is not None else None
            )
            attempt = await self._attempt_auto_approval(
                request, customer, salesperson, risk, guardrails, rules, confidence
            )

        return CreateDiscountRequestResult(
            request=request,
            risk=risk,
            warnings=list(guardrails.warnings),
            recommendation=recommendation,
            auto_approval=attempt,
            next_steps=_next_steps(attempt, recommendation, request),
        )


def _next_steps(
    attempt: Optional[AutoApprovalAttempt],
    recommendation: Optional[AIOutcome[DiscountRecommendation]],
    request: DiscountRequest,
) -> list[str]:
    if attempt is not None and attempt.auto_approved:
        return [
            "Discount auto-approved by AI; proceed with the sale",
            "A manager may review the auto-approval",
        ]
    steps = ["Awaiting manager review"]
    if attempt is not None and attempt.evaluation.rejection_reason:
        steps.append(f"Not auto-approved: {attempt.evaluation.rejection_reason}")
    if (
        recommendation is not None
        and recommendation.value.recommended_discount_percentage
        < request.requested_discount_percentage
    ):
        steps.append(
            "Consider lowering the discount to "
            f"{recommendation.value.recommended_discount_percentage}%"
        )
    return steps
