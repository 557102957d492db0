"""
Guardrail Validator Tests.

Strictest ceiling and highest floor win; scoped rules only apply to their
target; customer status short-circuits everything.
"""

import uuid
from decimal import Decimal

from discountgov.domain.enums import CustomerStatus, RuleScope, RuleType, UserRole
from discountgov.domain.models import (
    BusinessRule,
    Customer,
    DiscountRequest,
    DiscountRequestItem,
    User,
)
from discountgov.guardrails.validator import GuardrailValidator, ValidationResult

D = Decimal

COMPANY = uuid.uuid4()
WIDGET = uuid.uuid4()
GADGET = uuid.uuid4()


def _items(discount):
    return [
        DiscountRequestItem(WIDGET, "Widget", 2, D("100"), D(discount), category="hardware"),
        DiscountRequestItem(GADGET, "Gadget", 1, D("50"), D(discount), category="accessories"),
    ]


def _request(discount="10", margin=None, customer_id=None, items=None):
    return DiscountRequest(
        company_id=COMPANY,
        customer_id=customer_id or uuid.uuid4(),
        salesperson_id=uuid.uuid4(),
        items=items or _items(discount),
        requested_discount_percentage=D(discount),
        estimated_margin_percentage=None if margin is None else D(margin),
    )


def _limit(value, name=None, scope=RuleScope.GLOBAL, target=None, company_id=COMPANY):
    return BusinessRule(
        company_id=company_id,
        name=name or f"Cap {value}",
        rule_type=RuleType.DISCOUNT_LIMIT,
        scope=scope,
        parameters=f'{{"maxDiscountPercentage": {value}}}',
        target_identifier=target,
    )


def _floor(value, name=None, scope=RuleScope.GLOBAL, target=None):
    return BusinessRule(
        company_id=COMPANY,
        name=name or f"Floor {value}",
        rule_type=RuleType.MINIMUM_MARGIN,
        scope=scope,
        parameters=f'{{"minMarginPercentage": {value}}}',
        target_identifier=target,
    )


class TestValidationResult:
    def test_success_and_failure(self):
        assert ValidationResult.success().is_valid
        failed = ValidationResult.failure("a", "b")
        assert not failed.is_valid
        assert failed.errors == ("a", "b")

    def test_merge(self):
        merged = ValidationResult.success(warnings=["w"]).merge(ValidationResult.failure("e"))
        assert not merged.is_valid
        assert merged.errors == ("e",)
        assert merged.warnings == ("w",)


class TestDiscountLimits:
    def setup_method(self):
        self.validator = GuardrailValidator()

    def test_no_rules_is_valid(self):
        assert self.validator.validate(_request("40"), []).is_valid

    def test_strictest_ceiling_wins(self):
        """With 15% and 10% ceilings, 12% fails against the 10% rule."""
        result = self.validator.validate(_request("12"), [_limit(15), _limit(10)])
        assert not result.is_valid
        assert len(result.errors) == 1
        assert "10" in result.errors[0]
        assert "Cap 10" in result.errors[0]

    def test_within_strictest_ceiling(self):
        result = self.validator.validate(_request("10"), [_limit(15), _limit(10)])
        assert result.is_valid

    def test_same_discount_different_company_caps(self):
        """15% passes a 20% cap and fails a 10% cap."""
        request = _request("15")
        assert self.validator.validate(request, [_limit(20)]).is_valid
        assert not self.validator.validate(request, [_limit(10)]).is_valid

    def test_product_scoped_ceiling(self):
        rule = _limit(5, name="Widget cap", scope=RuleScope.PRODUCT, target=str(WIDGET))
        result = self.validator.validate(_request("8"), [_limit(20), rule])
        assert not result.is_valid
        assert len(result.errors) == 1
        assert "Widget" in result.errors[0]
        assert "Widget cap" in result.errors[0]

    def test_category_scoped_ceiling_only_hits_matching_items(self):
        rule = _limit(5, name="Accessories cap", scope=RuleScope.CATEGORY, target="Accessories")
        result = self.validator.validate(_request("8"), [rule])
        assert not result.is_valid
        assert "Gadget" in result.errors[0]
        assert all("Widget" not in e for e in result.errors)

    def test_customer_scoped_rule(self):
        customer_id = uuid.uuid4()
        rule = _limit(5, scope=RuleScope.CUSTOMER, target=str(customer_id))
        assert not self.validator.validate(_request("8", customer_id=customer_id), [rule]).is_valid
        assert self.validator.validate(_request("8"), [rule]).is_valid

    def test_user_role_scoped_rule(self):
        seller = User(company_id=COMPANY, name="Seller", role=UserRole.SALESPERSON)
        manager = User(company_id=COMPANY, name="Boss", role=UserRole.MANAGER)
        rule = _limit(5, scope=RuleScope.USER_ROLE, target="salesperson")
        assert not self.validator.validate(_request("8"), [rule], salesperson=seller).is_valid
        assert self.validator.validate(_request("8"), [rule], salesperson=manager).is_valid

    def test_inactive_rule_ignored(self):
        rule = _limit(5)
        rule.is_active = False
        assert self.validator.validate(_request("8"), [rule]).is_valid

    def test_unparseable_rule_warns_and_is_ignored(self):
        broken = BusinessRule(
            company_id=COMPANY,
            name="Broken",
            rule_type=RuleType.DISCOUNT_LIMIT,
            parameters="oops",
        )
        result = self.validator.validate(_request("30"), [broken])
        assert result.is_valid
        assert any("Broken" in w for w in result.warnings)


class TestMinimumMargins:
    def setup_method(self):
        self.validator = GuardrailValidator()

    def test_margin_below_floor(self):
        result = self.validator.validate(_request("10", margin="15"), [_floor(20)])
        assert not result.is_valid
        assert "15" in result.errors[0]

    def test_highest_floor_wins(self):
        result = self.validator.validate(_request("10", margin="20"), [_floor(10), _floor(25)])
        assert not result.is_valid
        assert "Floor 25" in result.errors[0]

    def test_unknown_margin_warns(self):
        result = self.validator.validate(_request("10"), [_floor(20)])
        assert result.is_valid
        assert any("margin unknown" in w for w in result.warnings)

    def test_per_item_margin_from_costs(self):
        """Widget keeps 33.33%, Gadget drops to 11.11% against a 30% floor."""
        costs = {WIDGET: D("60"), GADGET: D("40")}
        result = self.validator.validate(_request("10"), [_floor(30)], product_costs=costs)
        assert not result.is_valid
        assert len(result.errors) == 1
        assert "Gadget" in result.errors[0]
        assert "11.11" in result.errors[0]

    def test_item_floor_breach_names_largest_allowed_discount(self):
        """Widget cost 60 at a 35% floor: the price may drop to 92.31, i.e. 7.69% off."""
        rule = _floor(35, name="Widget floor", scope=RuleScope.PRODUCT, target=str(WIDGET))
        result = self.validator.validate(
            _request("10"), [rule], product_costs={WIDGET: D("60"), GADGET: D("40")}
        )
        assert not result.is_valid
        assert len(result.errors) == 1
        assert "Widget floor" in result.errors[0]
        assert "at most 7.69% discount" in result.errors[0]

    def test_duplicate_product_lines_checked_separately(self):
        items = [
            DiscountRequestItem(WIDGET, "Widget", 1, D("100"), D("5")),
            DiscountRequestItem(WIDGET, "Widget", 1, D("100"), D("30")),
        ]
        rule = _floor(35, scope=RuleScope.PRODUCT, target=str(WIDGET))
        result = self.validator.validate(
            _request("10", items=items), [rule], product_costs={WIDGET: D("60")}
        )
        # 95 → 36.84% passes, 70 → 14.29% fails
        assert len(result.errors) == 1
        assert "14.29" in result.errors[0]

    def test_missing_cost_warns(self):
        result = self.validator.validate(
            _request("10"), [_floor(30)], product_costs={WIDGET: D("60")}
        )
        assert result.is_valid
        assert any("Gadget" in w for w in result.warnings)


class TestCustomerStatus:
    def setup_method(self):
        self.validator = GuardrailValidator()

    def test_blocked_customer_fails_immediately(self):
        customer = Customer(company_id=COMPANY, name="Shady", status=CustomerStatus.BLOCKED)
        result = self.validator.validate(_request("1", customer_id=customer.id), [], customer=customer)
        assert not result.is_valid
        assert "blocked" in result.errors[0]

    def test_inactive_customer_fails(self):
        customer = Customer(company_id=COMPANY, name="Dormant", status=CustomerStatus.INACTIVE)
        result = self.validator.validate(_request("1", customer_id=customer.id), [], customer=customer)
        assert not result.is_valid

    def test_prospect_allowed(self):
        customer = Customer(company_id=COMPANY, name="New", status=CustomerStatus.PROSPECT)
        result = self.validator.validate(_request("1", customer_id=customer.id), [], customer=customer)
        assert result.is_valid
