"""
Try Auto-Approve workflow.

Re-evaluates an existing request that is still under analysis, e.g. after
business rules or governance thresholds changed. The AI recommendation is
only consulted when the AI reports itself available; without it the gate
skips the confidence condition.
An inactive salesperson is not an error here; the safety checks decline
auto-approval and the request waits for a manager.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import structlog

from discountgov.ai.resilient import AIOutcome
from discountgov.ai.schemas import AIRiskScore, DiscountRecommendation
from discountgov.domain.enums import DiscountRequestStatus
from discountgov.domain.models import DiscountRequest
from discountgov.errors import InvalidTransitionError
from discountgov.guardrails.validator import ValidationResult
from discountgov.workflows.base import AutoApprovalAttempt, WorkflowBase

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TryAutoApproveCommand:
    company_id: uuid.UUID
    discount_request_id: uuid.UUID
    requested_by: uuid.UUID


@dataclass
class TryAutoApproveResult:
    request: DiscountRequest
    risk: AIOutcome[AIRiskScore]
    guardrails: ValidationResult
    attempt: AutoApprovalAttempt
    recommendation: Optional[AIOutcome[DiscountRecommendation]] = None

    @property
    def auto_approved(self) -> bool:
        return self.attempt.auto_approved

    @property
    def message(self) -> str:
        if self.auto_approved:
            return "Discount request auto-approved by AI"
        return f"Auto-approval not possible: {self.attempt.evaluation.rejection_reason}"


class TryAutoApproveWorkflow(WorkflowBase):
    """Run the auto-approval gate against a stored request."""

    async def execute(self, command: TryAutoApproveCommand) -> TryAutoApproveResult:
        request = await self._discount_request(command.company_id, command.discount_request_id)
        await self._user(command.company_id, command.requested_by)
        if request.status != DiscountRequestStatus.UNDER_ANALYSIS:
            raise InvalidTransitionError(request.status.value, "auto approve")

        customer = await self._customer(command.company_id, request.customer_id)
        salesperson = await self._user(command.company_id, request.salesperson_id, "Salesperson")
        products = await self._products(
            command.company_id, [i.product_id for i in request.items], require_active=False
        )
        rules = await self.repos.business_rules.list_active(command.company_id)
        customer_history, salesperson_history = await self._histories(request)

        recommendation = None
        available = await self.ai.is_available(command.company_id)
        if available.value:
            recommendation = await self._recommend(request, products, customer_history)

        guardrails = self.validator.validate(
            request,
            rules,
            customer=customer,
            salesperson=salesperson,
            product_costs=await self.repos.products.get_unit_costs(list(products)),
        )
        risk = await self._score_risk(request, customer, customer_history, salesperson_history)
        await self.repos.discount_requests.update(request)

        confidence: Optional[Decimal] = (
            recommendation.value.confidence if recommendation is not None else None
        )
        attempt = await self._attempt_auto_approval(
            request, customer, salesperson, risk, guardrails, rules, confidence
        )
        if not attempt.auto_approved:
            logger.info(
                "auto_approval_declined",
                request_id=str(request.id),
                reason=attempt.evaluation.rejection_reason,
                details=list(attempt.evaluation.rejection_details),
            )

        return TryAutoApproveResult(
            request=request,
            risk=risk,
            guardrails=guardrails,
            attempt=attempt,
            recommendation=recommendation,
        )
