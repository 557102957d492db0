"""
Decide Discount Request workflow: manual approve, reject or adjustment request.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog

from discountgov.domain.enums import ApprovalDecision
from discountgov.domain.models import Approval, DiscountRequest, sla_seconds_since
from discountgov.errors import DomainValidationError
from discountgov.workflows.base import WorkflowBase

logger = structlog.get_logger(__name__)

_JUSTIFIED_DECISIONS = (ApprovalDecision.REJECT, ApprovalDecision.REQUEST_ADJUSTMENT)


@dataclass(frozen=True)
class DecideDiscountRequestCommand:
    company_id: uuid.UUID
    discount_request_id: uuid.UUID
    approver_id: uuid.UUID
    decision: ApprovalDecision
    justification: Optional[str] = None


@dataclass
class DecideDiscountRequestResult:
    request: DiscountRequest
    approval: Approval


class DecideDiscountRequestWorkflow(WorkflowBase):
    async def execute(self, command: DecideDiscountRequestCommand) -> DecideDiscountRequestResult:
        approver = await self._reviewer(command.company_id, command.approver_id)
        request = await self._discount_request(command.company_id, command.discount_request_id)

        if command.decision in _JUSTIFIED_DECISIONS and not (command.justification or "").strip():
            raise DomainValidationError(
                f"Justification is mandatory for decision {command.decision.value}",
                field="justification",
            )

        if command.decision == ApprovalDecision.APPROVE:
            request.approve()
        elif command.decision == ApprovalDecision.REJECT:
            request.reject()
        else:
            request.request_adjustment()

        approval = Approval.by_human(
            discount_request_id=request.id,
            approver_id=approver.id,
            decision=command.decision,
            sla_seconds=sla_seconds_since(request.created_at, self.clock()),
            justification=command.justification,
        )
        await self.repos.discount_requests.update(request)
        await self.repos.approvals.add(approval)

        logger.info(
            "discount_request_decided",
            request_id=str(request.id),
            approver_id=str(approver.id),
            decision=command.decision.value,
            sla=approval.formatted_sla,
        )
        return DecideDiscountRequestResult(request=request, approval=approval)
