"""
Try Auto-Approve Workflow Tests.
"""

from decimal import Decimal

import pytest

from discountgov.domain.enums import DiscountRequestStatus, RuleType, UserStatus
from discountgov.domain.models import BusinessRule
from discountgov.errors import InvalidTransitionError, TenantMismatchError
from discountgov.workflows.auto_approve import TryAutoApproveCommand, TryAutoApproveWorkflow
from discountgov.workflows.create_request import (
    CreateDiscountRequestCommand,
    CreateDiscountRequestWorkflow,
    CreateItem,
)

D = Decimal


@pytest.fixture
def create(repos, resilient_ai, wall_clock):
    return CreateDiscountRequestWorkflow(repos, resilient_ai, clock=wall_clock)


@pytest.fixture
def workflow(repos, resilient_ai, wall_clock):
    return TryAutoApproveWorkflow(repos, resilient_ai, clock=wall_clock)


async def _pending(create, world, discount="10", **kw):
    kw.setdefault("try_auto_approve", False)
    result = await create.execute(
        CreateDiscountRequestCommand(
            company_id=world.company.id,
            salesperson_id=world.salesperson.id,
            customer_id=world.customer.id,
            items=[CreateItem(world.widget.id, 1)],
            requested_discount_percentage=D(discount),
            **kw,
        )
    )
    return result.request


def _command(world, request):
    return TryAutoApproveCommand(
        company_id=world.company.id,
        discount_request_id=request.id,
        requested_by=world.manager.id,
    )


class TestTryAutoApprove:
    @pytest.mark.asyncio
    async def test_pending_request_gets_auto_approved(self, create, workflow, world, repos, wall_clock):
        request = await _pending(create, world)
        wall_clock.advance(90)

        result = await workflow.execute(_command(world, request))

        assert result.auto_approved
        assert result.message == "Discount request auto-approved by AI"
        assert result.guardrails.is_valid
        stored = await repos.discount_requests.get(request.id)
        assert stored.status == DiscountRequestStatus.AUTO_APPROVED_BY_AI
        approvals = await repos.approvals.list_by_request(request.id)
        assert [a.sla_seconds for a in approvals] == [90]

    @pytest.mark.asyncio
    async def test_low_confidence_declines(self, create, workflow, world, fake_ai):
        request = await _pending(create, world, request_recommendation=False)
        fake_ai.recommendation_confidence = D("0.5")

        result = await workflow.execute(_command(world, request))

        assert not result.auto_approved
        assert result.request.status == DiscountRequestStatus.UNDER_ANALYSIS
        assert result.message == "Auto-approval not possible: AI confidence 0.50 below minimum 0.75"

    @pytest.mark.asyncio
    async def test_unavailable_ai_skips_recommendation(self, create, workflow, world, fake_ai):
        """Without a recommendation there is no confidence to check."""
        request = await _pending(create, world, request_recommendation=False)
        fake_ai.available = False

        result = await workflow.execute(_command(world, request))

        assert result.recommendation is None
        assert fake_ai.calls["recommend_discount"] == 0
        assert result.attempt.evaluation.ai_confidence is None
        assert all(c.name != "ai_confidence" for c in result.attempt.evaluation.conditions)
        assert result.auto_approved

    @pytest.mark.asyncio
    async def test_inactive_salesperson_declines(self, create, workflow, world, repos):
        """The salesperson left after filing; the request waits for a manager."""
        request = await _pending(create, world)
        world.salesperson.status = UserStatus.INACTIVE

        result = await workflow.execute(_command(world, request))

        evaluation = result.attempt.evaluation
        assert not result.auto_approved
        assert result.request.status == DiscountRequestStatus.UNDER_ANALYSIS
        assert "Salesperson is not active (status: inactive)" in evaluation.rejection_details
        assert evaluation.conditions[-1].name == "safety_checks"
        assert await repos.approvals.list_by_request(request.id) == []

    @pytest.mark.asyncio
    async def test_auto_approval_rule_tightens_thresholds(self, create, workflow, world, repos):
        request = await _pending(create, world)
        repos.business_rules.put(
            BusinessRule(
                company_id=world.company.id,
                name="Strict AI",
                rule_type=RuleType.AUTO_APPROVAL,
                parameters='{"maxRiskScore": 10}',
            )
        )

        result = await workflow.execute(_command(world, request))

        evaluation = result.attempt.evaluation
        assert not result.auto_approved
        assert evaluation.max_risk_score_threshold == D("10")
        assert evaluation.rejection_reason == "Risk score 20.0 exceeds maximum 10.0"

    @pytest.mark.asyncio
    async def test_only_under_analysis(self, create, workflow, world):
        request = await _pending(create, world, try_auto_approve=True)
        assert request.status == DiscountRequestStatus.AUTO_APPROVED_BY_AI

        with pytest.raises(InvalidTransitionError):
            await workflow.execute(_command(world, request))

    @pytest.mark.asyncio
    async def test_other_company_cannot_reevaluate(self, create, workflow, world, other_world):
        request = await _pending(create, world)
        with pytest.raises(TenantMismatchError):
            await workflow.execute(
                TryAutoApproveCommand(
                    company_id=other_world.company.id,
                    discount_request_id=request.id,
                    requested_by=other_world.manager.id,
                )
            )
