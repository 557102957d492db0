"""
Domain Entity Tests.
"""

import json
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from discountgov.domain.enums import (
    ApprovalDecision,
    CustomerStatus,
    DiscountRequestStatus,
    RuleScope,
    RuleType,
    UserRole,
)
from discountgov.domain.models import (
    Approval,
    BusinessRule,
    Customer,
    DiscountRequest,
    DiscountRequestItem,
    Product,
    User,
    sla_seconds_since,
)
from discountgov.domain.values import to_decimal
from discountgov.errors import DomainValidationError, ErrorCode, InvalidTransitionError

D = Decimal
COMPANY = uuid.uuid4()


def _item(discount="10", quantity=2, price="100"):
    return DiscountRequestItem(uuid.uuid4(), "Widget", quantity, D(price), D(discount))


def _request(discount="10", **kw):
    return DiscountRequest(
        company_id=COMPANY,
        customer_id=uuid.uuid4(),
        salesperson_id=uuid.uuid4(),
        items=[_item(discount)],
        requested_discount_percentage=D(discount),
        **kw,
    )


class TestValues:
    def test_float_keeps_literal_value(self):
        assert to_decimal(0.1) == D("0.1")
        assert to_decimal(35) == D("35")

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            to_decimal(True)

    @pytest.mark.parametrize("value", ["abc", float("nan"), float("inf")])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)


class TestProductAndItems:
    def test_unit_cost(self):
        product = Product(COMPANY, "Widget", D("100"), D("40"))
        assert product.unit_cost == D("60")

    def test_invalid_product(self):
        with pytest.raises(DomainValidationError):
            Product(COMPANY, "Widget", D("-1"), D("40"))
        with pytest.raises(DomainValidationError):
            Product(COMPANY, "Widget", D("100"), D("140"))

    def test_item_totals(self):
        item = _item("10", quantity=3)
        assert item.unit_final_price == D("90")
        assert item.total_base_price == D("300")
        assert item.total_final_price == D("270")
        assert item.total_discount_amount == D("30")

    @pytest.mark.parametrize("kw", [{"quantity": 0}, {"price": "-5"}, {"discount": "101"}])
    def test_invalid_item(self, kw):
        with pytest.raises(DomainValidationError):
            _item(**kw)


class TestDiscountRequest:
    def test_defaults(self):
        request = _request()
        assert request.status == DiscountRequestStatus.UNDER_ANALYSIS
        assert request.is_under_analysis
        assert request.can_be_modified
        assert request.total_final_price == D("180")

    def test_needs_items(self):
        with pytest.raises(DomainValidationError) as exc_info:
            DiscountRequest(COMPANY, uuid.uuid4(), uuid.uuid4(), [], D("10"))
        assert exc_info.value.field == "items"
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR

    def test_discount_range(self):
        with pytest.raises(DomainValidationError):
            _request("101")

    def test_risk_score_range(self):
        request = _request()
        with pytest.raises(DomainValidationError):
            request.set_risk_score(D("100.1"))
        request.set_risk_score(D("66.5"))
        assert request.risk_score == D("66.5")
        assert request.updated_at is not None

    @pytest.mark.parametrize(
        "action,status",
        [
            ("approve", DiscountRequestStatus.APPROVED),
            ("reject", DiscountRequestStatus.REJECTED),
            ("request_adjustment", DiscountRequestStatus.ADJUSTMENT_REQUESTED),
            ("auto_approve_by_ai", DiscountRequestStatus.AUTO_APPROVED_BY_AI),
        ],
    )
    def test_transitions_from_under_analysis(self, action, status):
        request = _request()
        getattr(request, action)()
        assert request.status == status

    @pytest.mark.parametrize("first", ["approve", "reject", "request_adjustment", "auto_approve_by_ai"])
    @pytest.mark.parametrize("second", ["approve", "reject", "request_adjustment", "auto_approve_by_ai"])
    def test_no_transition_after_decision(self, first, second):
        request = _request()
        getattr(request, first)()
        with pytest.raises(InvalidTransitionError):
            getattr(request, second)()

    def test_override_auto_approval(self):
        request = _request()
        request.auto_approve_by_ai()
        request.override_auto_approval(ApprovalDecision.REQUEST_ADJUSTMENT)
        assert request.status == DiscountRequestStatus.ADJUSTMENT_REQUESTED

    def test_override_requires_ai_approval(self):
        request = _request()
        request.approve()
        with pytest.raises(InvalidTransitionError):
            request.override_auto_approval(ApprovalDecision.REJECT)

    def test_override_cannot_approve(self):
        request = _request()
        request.auto_approve_by_ai()
        with pytest.raises(DomainValidationError):
            request.override_auto_approval(ApprovalDecision.APPROVE)
        assert request.status == DiscountRequestStatus.AUTO_APPROVED_BY_AI


class TestApproval:
    def test_human_reject_needs_justification(self):
        with pytest.raises(DomainValidationError):
            Approval.by_human(uuid.uuid4(), uuid.uuid4(), ApprovalDecision.REJECT, 10, justification="  ")

    def test_human_approve_without_justification(self):
        approval = Approval.by_human(uuid.uuid4(), uuid.uuid4(), ApprovalDecision.APPROVE, 10)
        assert not approval.is_ai_approval

    def test_ai_approval(self):
        approval = Approval.by_ai(uuid.uuid4(), ApprovalDecision.APPROVE, 3, metadata={"b": 1, "a": D("2")})
        assert approval.is_ai_approval
        assert approval.approver_identifier == "AI"
        assert json.loads(approval.metadata_json()) == {"a": "2", "b": 1}

    def test_negative_sla(self):
        with pytest.raises(DomainValidationError):
            Approval.by_ai(uuid.uuid4(), ApprovalDecision.APPROVE, -1)

    @pytest.mark.parametrize(
        "seconds,text",
        [(45, "45s"), (125, "2m 5s"), (3725, "1h 2m"), (90000, "1d 1h")],
    )
    def test_formatted_sla(self, seconds, text):
        assert Approval.by_ai(uuid.uuid4(), ApprovalDecision.APPROVE, seconds).formatted_sla == text

    def test_meets_sla(self):
        approval = Approval.by_ai(uuid.uuid4(), ApprovalDecision.APPROVE, 3600)
        assert approval.meets_sla(3600)
        assert not approval.meets_sla(3599)

    def test_sla_seconds_since(self):
        created = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert sla_seconds_since(created, created + timedelta(minutes=2, seconds=1.9)) == 121
        assert sla_seconds_since(created, created - timedelta(seconds=5)) == 0


class TestPeopleAndRules:
    def test_customer_flags(self):
        assert Customer(COMPANY, "P", status=CustomerStatus.PROSPECT).can_receive_discount_requests
        blocked = Customer(COMPANY, "B", status=CustomerStatus.BLOCKED)
        assert blocked.is_blocked
        assert not blocked.can_receive_discount_requests

    def test_reviewer_roles(self):
        assert User(COMPANY, "M", role=UserRole.MANAGER).can_review_approvals
        assert User(COMPANY, "A", role=UserRole.ADMIN).can_review_approvals
        assert not User(COMPANY, "S").can_review_approvals

    def test_rule_targeting(self):
        global_rule = BusinessRule(COMPANY, "G", RuleType.DISCOUNT_LIMIT)
        assert global_rule.applies_to_target(None)
        scoped = BusinessRule(
            COMPANY, "C", RuleType.DISCOUNT_LIMIT, scope=RuleScope.CATEGORY, target_identifier=" Hardware "
        )
        assert scoped.applies_to_target("hardware")
        assert not scoped.applies_to_target("software")
        assert not scoped.applies_to_target(None)
