"""
Risk Sub-Scores — one 0-100 contribution per signal category.

- customer_history_risk: how the customer has behaved on past requests
- discount_deviation_risk: how far the ask is from what was granted before
- salesperson_behavior_risk: the requester's own track record
- margin_impact_risk: how thin the resulting margin is

Pure and deterministic. The fallback path of the AI wrapper relies on
identical inputs producing identical scores.
"""

from decimal import Decimal
from typing import Mapping, Optional, Protocol, Sequence

from discountgov.domain.enums import CustomerClassification, CustomerStatus
from discountgov.domain.history import CustomerDiscountHistory, SalespersonDiscountHistory
from discountgov.domain.margin import item_margins
from discountgov.domain.models import DiscountRequestItem
from discountgov.domain.values import HUNDRED, ZERO, Numeric, clamp, to_decimal

# ── Configuration ─────────────────────────────────────────────────────────

UNKNOWN_CUSTOMER_RISK = Decimal("60")
NEUTRAL_SALESPERSON_RISK = Decimal("50")
UNKNOWN_MARGIN_RISK = Decimal("50")

PAYMENT_DELAY_PENALTY = Decimal("25")
PAYMENT_DEFAULT_PENALTY = Decimal("40")
INACTIVE_CUSTOMER_PENALTY = Decimal("20")
CLASSIFICATION_ADJUSTMENT = {
    CustomerClassification.A: Decimal("-10"),
    CustomerClassification.C: Decimal("10"),
}

# (approval rate below, added risk); first match wins
CUSTOMER_APPROVAL_BANDS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("0.50"), Decimal("40")),
    (Decimal("0.70"), Decimal("25")),
    (Decimal("0.85"), Decimal("10")),
)

# (requested discount above, risk)
NO_HISTORY_DISCOUNT_BANDS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("30"), Decimal("90")),
    (Decimal("20"), Decimal("70")),
    (Decimal("10"), Decimal("50")),
)
NO_HISTORY_BASE_RISK = Decimal("30")

# (deviation % above, risk)
DEVIATION_BANDS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("100"), Decimal("90")),
    (Decimal("75"), Decimal("75")),
    (Decimal("50"), Decimal("60")),
    (Decimal("25"), Decimal("40")),
)
DEVIATION_BASE_RISK = Decimal("20")
ZERO_AVERAGE_MULTIPLIER = Decimal("10")

SALESPERSON_APPROVAL_BANDS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("0.50"), Decimal("35")),
    (Decimal("0.60"), Decimal("20")),
)
SALESPERSON_DISCOUNT_BANDS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("25"), Decimal("25")),
    (Decimal("20"), Decimal("15")),
)
LOW_WIN_RATE = Decimal("0.60")
LOW_WIN_RATE_PENALTY = Decimal("20")
HIGH_WIN_RATE = Decimal("0.85")
HIGH_WIN_RATE_CREDIT = Decimal("-15")
REJECTION_TREND_LIMIT = Decimal("0.40")
REJECTION_TREND_PENALTY = Decimal("20")

# (margin % below, risk); negative margins are handled first
MARGIN_BANDS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("5"), Decimal("95")),
    (Decimal("10"), Decimal("80")),
    (Decimal("15"), Decimal("60")),
    (Decimal("20"), Decimal("40")),
    (Decimal("25"), Decimal("25")),
    (Decimal("30"), Decimal("15")),
)
NEGATIVE_MARGIN_RISK = HUNDRED
HEALTHY_MARGIN_RISK = Decimal("5")


class CustomerLike(Protocol):
    status: CustomerStatus
    classification: CustomerClassification


def _first_above(value: Decimal, bands, default: Decimal) -> Decimal:
    for threshold, risk in bands:
        if value > threshold:
            return risk
    return default


def _first_below(value: Decimal, bands, default: Decimal) -> Decimal:
    for threshold, risk in bands:
        if value < threshold:
            return risk
    return default


# ── Sub-scores ────────────────────────────────────────────────────────────


def customer_history_risk(
    customer: Optional[CustomerLike],
    history: Optional[CustomerDiscountHistory],
) -> Decimal:
    """
    Unknown customers (no history, or prospects) start at 60.

    Known customers accumulate risk from a low approval rate, payment
    delays (+25) and defaults (+40), a C classification and inactivity;
    an A classification takes 10 off.
    """
    if history is None or history.total_requests <= 0:
        return UNKNOWN_CUSTOMER_RISK
    if customer is not None and customer.status == CustomerStatus.PROSPECT:
        return UNKNOWN_CUSTOMER_RISK

    risk = _first_below(history.approval_rate, CUSTOMER_APPROVAL_BANDS, ZERO)
    if history.has_payment_delays:
        risk += PAYMENT_DELAY_PENALTY
    if history.has_defaults:
        risk += PAYMENT_DEFAULT_PENALTY
    if customer is not None:
        risk += CLASSIFICATION_ADJUSTMENT.get(customer.classification, ZERO)
        if customer.status != CustomerStatus.ACTIVE:
            risk += INACTIVE_CUSTOMER_PENALTY
    return clamp(risk)


def discount_deviation_risk(
    requested_discount: Numeric,
    history: Optional[CustomerDiscountHistory],
) -> Decimal:
    """
    Without history the absolute size of the discount drives the score.

    With history: deviation = |requested − average| / average × 100, or
    requested × 10 when the historical average is zero.
    """
    requested = to_decimal(requested_discount)
    if history is None or history.total_requests <= 0:
        return _first_above(requested, NO_HISTORY_DISCOUNT_BANDS, NO_HISTORY_BASE_RISK)

    average = history.average_approved_discount
    if average > ZERO:
        deviation = abs(requested - average) / average * HUNDRED
    else:
        deviation = requested * ZERO_AVERAGE_MULTIPLIER
    return _first_above(deviation, DEVIATION_BANDS, DEVIATION_BASE_RISK)


def salesperson_behavior_risk(history: Optional[SalespersonDiscountHistory]) -> Decimal:
    """Neutral 50 without history; otherwise built up from the track record."""
    if history is None or history.total_requests <= 0:
        return NEUTRAL_SALESPERSON_RISK

    risk = _first_below(history.approval_rate, SALESPERSON_APPROVAL_BANDS, ZERO)
    risk += _first_above(
        history.average_requested_discount, SALESPERSON_DISCOUNT_BANDS, ZERO
    )
    if history.win_rate is not None:
        if history.win_rate < LOW_WIN_RATE:
            risk += LOW_WIN_RATE_PENALTY
        elif history.win_rate > HIGH_WIN_RATE:
            risk += HIGH_WIN_RATE_CREDIT
    if history.recent_rejection_trend > REJECTION_TREND_LIMIT:
        risk += REJECTION_TREND_PENALTY
    return clamp(risk)


def margin_impact_risk(estimated_margin: Optional[Numeric]) -> Decimal:
    """Strictly decreasing step function of the margin %."""
    if estimated_margin is None:
        return UNKNOWN_MARGIN_RISK
    margin = to_decimal(estimated_margin)
    if margin < ZERO:
        return NEGATIVE_MARGIN_RISK
    return _first_below(margin, MARGIN_BANDS, HEALTHY_MARGIN_RISK)


def item_margin_impact_risk(
    items: Sequence[DiscountRequestItem],
    product_costs: Mapping,
) -> Decimal:
    """Mean margin risk over the items whose unit cost is known."""
    risks = [
        margin_impact_risk(margin)
        for margin in item_margins(items, product_costs)
        if margin is not None
    ]
    if not risks:
        return UNKNOWN_MARGIN_RISK
    return sum(risks, ZERO) / len(risks)
