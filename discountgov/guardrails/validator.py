"""
Guardrail Validator — checks a discount request against the company's
active business rules.

Order of evaluation:
1. Customer status. Blocked (or otherwise not allowed to receive requests)
   fails immediately; no rule is looked at.
2. Decode active rules. Unparseable ones are skipped with a warning.
3. Discount limits. The strictest (lowest) applicable ceiling wins.
4. Minimum margins. The strictest (highest) applicable floor wins.

Every discount-limit or margin breach is a blocking error. Warnings are
informational (skipped rule, unknown margin, missing product cost).
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

import structlog

from discountgov.domain.enums import RuleScope, RuleType
from discountgov.domain.margin import item_margins, max_discount_for_margin
from discountgov.domain.models import (
    BusinessRule,
    Customer,
    DiscountRequest,
    DiscountRequestItem,
    User,
)
from discountgov.guardrails.params import DecodedRule, decode_rules

logger = structlog.get_logger(__name__)

REQUEST_SCOPES = (RuleScope.GLOBAL, RuleScope.CUSTOMER, RuleScope.USER_ROLE)
ITEM_SCOPES = (RuleScope.PRODUCT, RuleScope.CATEGORY)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @classmethod
    def of(cls, errors: Sequence[str] = (), warnings: Sequence[str] = ()) -> "ValidationResult":
        return cls(is_valid=not errors, errors=tuple(errors), warnings=tuple(warnings))

    @classmethod
    def success(cls, warnings: Sequence[str] = ()) -> "ValidationResult":
        return cls.of(warnings=warnings)

    @classmethod
    def failure(cls, *errors: str) -> "ValidationResult":
        return cls.of(errors=errors)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult.of(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )


@dataclass(frozen=True)
class _Limit:
    value: Decimal
    rule_name: str


@dataclass
class _Collector:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class GuardrailValidator:
    """Validate discount requests against business rules."""

    def validate(
        self,
        request: DiscountRequest,
        rules: Iterable[BusinessRule],
        customer: Optional[Customer] = None,
        salesperson: Optional[User] = None,
        product_costs: Optional[Mapping[uuid.UUID, Decimal]] = None,
    ) -> ValidationResult:
        if customer is not None:
            if customer.is_blocked:
                logger.info("guardrail_customer_blocked", customer_id=str(customer.id))
                return ValidationResult.failure(
                    f"Customer '{customer.name}' is blocked and cannot receive discounts"
                )
            if not customer.can_receive_discount_requests:
                return ValidationResult.failure(
                    f"Customer '{customer.name}' cannot receive discount requests "
                    f"(status: {customer.status.value})"
                )

        decoded, skipped = decode_rules(rules)
        out = _Collector(warnings=list(skipped))

        applicable = [d for d in decoded if self._applies_to_request(d.rule, request, salesperson)]
        item_scoped = [d for d in decoded if d.rule.scope in ITEM_SCOPES]

        self._check_discount_limits(request, applicable, item_scoped, out)
        self._check_minimum_margins(request, applicable, item_scoped, product_costs, out)

        result = ValidationResult.of(errors=out.errors, warnings=out.warnings)
        if not result.is_valid:
            logger.info(
                "guardrail_violation",
                request_id=str(request.id),
                errors=list(result.errors),
            )
        return result

    # ── Scope ────────────────────────────────────────────────────────────

    @staticmethod
    def _applies_to_request(
        rule: BusinessRule, request: DiscountRequest, salesperson: Optional[User]
    ) -> bool:
        if rule.scope == RuleScope.GLOBAL:
            return True
        if rule.scope == RuleScope.CUSTOMER:
            return rule.applies_to_target(request.customer_id)
        if rule.scope == RuleScope.USER_ROLE:
            return salesperson is not None and rule.applies_to_target(salesperson.role.value)
        return False

    @staticmethod
    def _applies_to_item(rule: BusinessRule, item: DiscountRequestItem) -> bool:
        if rule.scope == RuleScope.PRODUCT:
            return rule.applies_to_target(item.product_id)
        if rule.scope == RuleScope.CATEGORY:
            return rule.applies_to_target(item.category)
        return False

    # ── Discount limits ──────────────────────────────────────────────────

    @staticmethod
    def _ceilings(rules: Iterable[DecodedRule]) -> list[_Limit]:
        return [
            _Limit(d.params.max_discount_percentage, d.name)
            for d in rules
            if d.rule.rule_type == RuleType.DISCOUNT_LIMIT
        ]

    def _check_discount_limits(
        self,
        request: DiscountRequest,
        applicable: list[DecodedRule],
        item_scoped: list[DecodedRule],
        out: _Collector,
    ) -> None:
        request_ceilings = self._ceilings(applicable)
        request_ceiling = min(request_ceilings, key=lambda c: c.value, default=None)

        overall = request.requested_discount_percentage
        if request_ceiling is not None and overall > request_ceiling.value:
            out.errors.append(
                f"Requested discount {overall}% exceeds the maximum of "
                f"{request_ceiling.value}% set by rule '{request_ceiling.rule_name}'"
            )

        for item in request.items:
            ceilings = request_ceilings + self._ceilings(
                d for d in item_scoped if self._applies_to_item(d.rule, item)
            )
            ceiling = min(ceilings, key=lambda c: c.value, default=None)
            if ceiling is None:
                continue
            # Already reported through the overall check.
            if ceiling is request_ceiling and item.discount_percentage <= overall:
                continue
            if item.discount_percentage > ceiling.value:
                out.errors.append(
                    f"Discount {item.discount_percentage}% on '{item.product_name}' exceeds "
                    f"the maximum of {ceiling.value}% set by rule '{ceiling.rule_name}'"
                )

    # ── Minimum margins ──────────────────────────────────────────────────

    @staticmethod
    def _floors(rules: Iterable[DecodedRule]) -> list[_Limit]:
        return [
            _Limit(d.params.min_margin_percentage, d.name)
            for d in rules
            if d.rule.rule_type == RuleType.MINIMUM_MARGIN
        ]

    def _check_minimum_margins(
        self,
        request: DiscountRequest,
        applicable: list[DecodedRule],
        item_scoped: list[DecodedRule],
        product_costs: Optional[Mapping[uuid.UUID, Decimal]],
        out: _Collector,
    ) -> None:
        request_floors = self._floors(applicable)
        request_floor = max(request_floors, key=lambda f: f.value, default=None)
        margin = request.estimated_margin_percentage

        if request_floor is not None:
            if margin is None and not product_costs:
                out.warnings.append(
                    "Estimated margin unknown; minimum margin rules could not be checked"
                )
            elif margin is not None and margin < request_floor.value:
                out.errors.append(
                    f"Estimated margin {margin}% is below the minimum of "
                    f"{request_floor.value}% set by rule '{request_floor.rule_name}'"
                )

        known_margins = item_margins(request.items, product_costs or {})
        for item, known_margin in zip(request.items, known_margins):
            item_floors = self._floors(
                d for d in item_scoped if self._applies_to_item(d.rule, item)
            )
            if not item_floors and not (request_floors and product_costs):
                continue
            floor = max(request_floors + item_floors, key=lambda f: f.value)

            unit_cost = (product_costs or {}).get(item.product_id)
            if known_margin is not None:
                item_margin = known_margin
            elif item_floors and margin is not None:
                item_margin = margin
            else:
                out.warnings.append(
                    f"Cost unknown for '{item.product_name}'; margin could not be checked"
                )
                continue

            # Request-level floor against the request margin is already reported.
            if unit_cost is None and floor is request_floor:
                continue
            if item_margin < floor.value:
                message = (
                    f"Margin {item_margin}% on '{item.product_name}' is below the minimum of "
                    f"{floor.value}% set by rule '{floor.rule_name}'"
                )
                if unit_cost is not None:
                    ceiling = max_discount_for_margin(item.unit_base_price, unit_cost, floor.value)
                    message += f"; at most {ceiling}% discount keeps that margin"
                out.errors.append(message)
