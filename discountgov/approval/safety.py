"""
Pre-Approval Safety Checks — hard limits an AI approval never crosses,
whatever the governance thresholds allow.

Checks:
1. Customer is active (prospects and inactive customers go to a manager)
2. Salesperson is active
3. Order value before discount within the auto-approval limit
4. Estimated margin not negative
5. Item count within the auto-approval limit

A failed check never blocks the request itself; it only keeps the AI from
approving it. Every failure is reported, in check order.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from discountgov.config import Settings
from discountgov.domain.models import Customer, DiscountRequest, User
from discountgov.domain.values import ZERO, to_decimal

MAX_ORDER_VALUE = Decimal("100000")
MAX_ITEMS: int = 50


@dataclass(frozen=True)
class SafetyLimits:
    max_order_value: Decimal = MAX_ORDER_VALUE
    max_items: int = MAX_ITEMS

    @classmethod
    def from_settings(cls, s: Settings) -> "SafetyLimits":
        return cls(
            max_order_value=to_decimal(s.auto_approval_max_order_value),
            max_items=s.auto_approval_max_items,
        )


@dataclass(frozen=True)
class SafetyCheckResult:
    failures: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return not self.failures

    @property
    def reason(self) -> Optional[str]:
        return self.failures[0] if self.failures else None


def run_safety_checks(
    request: DiscountRequest,
    customer: Customer,
    salesperson: User,
    limits: Optional[SafetyLimits] = None,
) -> SafetyCheckResult:
    limits = limits or SafetyLimits()
    failures: list[str] = []

    if not customer.is_active:
        failures.append(f"Customer is not active (status: {customer.status.value})")
    if not salesperson.is_active:
        failures.append(f"Salesperson is not active (status: {salesperson.status.value})")

    order_value = request.total_base_price
    if order_value > limits.max_order_value:
        failures.append(
            f"Order value {order_value:.2f} exceeds auto-approval limit "
            f"{limits.max_order_value:.2f}"
        )

    margin = request.estimated_margin_percentage
    if margin is not None and margin < ZERO:
        failures.append(f"Negative margin detected ({margin}%)")

    if len(request.items) > limits.max_items:
        failures.append(
            f"Too many items for auto-approval ({len(request.items)} > {limits.max_items})"
        )

    return SafetyCheckResult(failures=tuple(failures))
