"""
Review Auto-Approval workflow.

A manager or admin either confirms an AI approval (nothing changes) or
overrides it into a rejection or an adjustment request. Overrides always
need a justification and are recorded as a human approval that points at
the AI approval it replaces.
"""

import uuid
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

import structlog

from discountgov.domain.enums import ApprovalDecision, DiscountRequestStatus
from discountgov.domain.models import Approval, DiscountRequest, sla_seconds_since
from discountgov.errors import DomainValidationError, InvalidTransitionError, NotFoundError
from discountgov.workflows.base import WorkflowBase

logger = structlog.get_logger(__name__)


class ReviewAction(StrEnum):
    CONFIRM = "confirm"
    OVERRIDE = "override"


@dataclass(frozen=True)
class ReviewAutoApprovalCommand:
    company_id: uuid.UUID
    discount_request_id: uuid.UUID
    reviewer_id: uuid.UUID
    action: ReviewAction
    decision: Optional[ApprovalDecision] = None
    justification: Optional[str] = None


@dataclass
class ReviewAutoApprovalResult:
    request: DiscountRequest
    ai_approval: Approval
    override: Optional[Approval] = None

    @property
    def overridden(self) -> bool:
        return self.override is not None


class ReviewAutoApprovalWorkflow(WorkflowBase):
    """Confirm or override an AI auto-approval."""

    async def execute(self, command: ReviewAutoApprovalCommand) -> ReviewAutoApprovalResult:
        reviewer = await self._reviewer(command.company_id, command.reviewer_id)
        request = await self._discount_request(command.company_id, command.discount_request_id)
        if request.status != DiscountRequestStatus.AUTO_APPROVED_BY_AI:
            raise InvalidTransitionError(request.status.value, "review auto-approval of")

        approvals = await self.repos.approvals.list_by_request(request.id)
        ai_approvals = [a for a in approvals if a.is_ai_approval]
        if not ai_approvals:
            raise NotFoundError("AI approval for discount request", request.id)
        ai_approval = max(ai_approvals, key=lambda a: a.decided_at)

        if command.action == ReviewAction.CONFIRM:
            logger.info(
                "auto_approval_confirmed",
                request_id=str(request.id),
                reviewer_id=str(reviewer.id),
            )
            return ReviewAutoApprovalResult(request=request, ai_approval=ai_approval)

        if command.decision not in (ApprovalDecision.REJECT, ApprovalDecision.REQUEST_ADJUSTMENT):
            raise DomainValidationError(
                "Overriding an AI approval requires decision reject or request_adjustment",
                field="decision",
            )
        if not (command.justification or "").strip():
            raise DomainValidationError(
                "Justification is mandatory when overriding an AI approval",
                field="justification",
            )

        request.override_auto_approval(command.decision)
        override = Approval.by_human(
            discount_request_id=request.id,
            approver_id=reviewer.id,
            decision=command.decision,
            sla_seconds=sla_seconds_since(request.created_at, self.clock()),
            justification=command.justification,
            metadata={
                "overrides_approval_id": str(ai_approval.id),
                "previous_status": DiscountRequestStatus.AUTO_APPROVED_BY_AI.value,
            },
        )
        await self.repos.discount_requests.update(request)
        await self.repos.approvals.add(override)

        logger.warning(
            "auto_approval_overridden",
            request_id=str(request.id),
            reviewer_id=str(reviewer.id),
            decision=command.decision.value,
        )
        return ReviewAutoApprovalResult(request=request, ai_approval=ai_approval, override=override)
