"""
Margin calculations.

margin % = (final price − cost) / final price × 100, rounded to 2 places.
"""

import uuid
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

from discountgov.domain.models import DiscountRequestItem, Product
from discountgov.domain.values import HUNDRED, ZERO, Numeric, clamp, round2, to_decimal
from discountgov.errors import DomainValidationError


def margin_percentage(final_price: Numeric, cost: Numeric) -> Decimal:
    final_price = to_decimal(final_price)
    cost = to_decimal(cost)
    if final_price < ZERO or cost < ZERO:
        raise DomainValidationError("Price and cost cannot be negative")
    if final_price == ZERO:
        return ZERO
    return round2((final_price - cost) / final_price * HUNDRED)


def max_discount_for_margin(
    base_price: Numeric, cost: Numeric, min_margin_percentage: Numeric
) -> Decimal:
    """Largest discount % on base_price that keeps margin ≥ the floor."""
    base_price = to_decimal(base_price)
    cost = to_decimal(cost)
    floor = to_decimal(min_margin_percentage)
    if base_price <= ZERO:
        return ZERO
    if floor >= HUNDRED:
        return ZERO
    # final ≥ cost / (1 − floor/100)
    min_final = cost / (1 - floor / HUNDRED)
    return round2(clamp((1 - min_final / base_price) * HUNDRED))


def estimated_margin(
    items: Sequence[DiscountRequestItem],
    products: Mapping[uuid.UUID, Product],
) -> Optional[Decimal]:
    """Revenue-weighted margin over the items whose product is known."""
    revenue = ZERO
    cost = ZERO
    known = False
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            continue
        known = True
        revenue += item.total_final_price
        cost += product.unit_cost * item.quantity
    if not known:
        return None
    return margin_percentage(revenue, cost)


def item_margins(
    items: Iterable[DiscountRequestItem],
    product_costs: Mapping[uuid.UUID, Numeric],
) -> list[Optional[Decimal]]:
    """Margin per item, in item order; None where the unit cost is unknown."""
    margins: list[Optional[Decimal]] = []
    for item in items:
        unit_cost = product_costs.get(item.product_id)
        margins.append(
            None if unit_cost is None else margin_percentage(item.unit_final_price, unit_cost)
        )
    return margins
