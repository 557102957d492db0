"""
History Aggregate and Margin Tests.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from discountgov.domain.history import CustomerDiscountHistory, SalespersonDiscountHistory
from discountgov.domain.margin import (
    estimated_margin,
    item_margins,
    margin_percentage,
    max_discount_for_margin,
)
from discountgov.domain.models import DiscountRequest, DiscountRequestItem, Product
from discountgov.errors import DomainValidationError

D = Decimal
COMPANY = uuid.uuid4()
NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _request(discount, outcome=None, created_at=NOW):
    request = DiscountRequest(
        company_id=COMPANY,
        customer_id=uuid.uuid4(),
        salesperson_id=uuid.uuid4(),
        items=[DiscountRequestItem(uuid.uuid4(), "Widget", 1, D("100"), D(discount))],
        requested_discount_percentage=D(discount),
        created_at=created_at,
    )
    if outcome:
        getattr(request, outcome)()
    return request


class TestCustomerDiscountHistory:
    def test_no_requests(self):
        assert CustomerDiscountHistory.from_requests([]) is None

    def test_aggregates(self):
        history = CustomerDiscountHistory.from_requests(
            [
                _request("10", "approve"),
                _request("20", "auto_approve_by_ai"),
                _request("30", "reject"),
                _request("5"),
            ]
        )
        assert history.total_requests == 4
        assert history.approved_requests == 2
        assert history.rejected_requests == 1
        assert history.average_approved_discount == D("15")
        assert history.max_approved_discount == D("20")
        assert history.approval_rate == D("0.5")
        assert history.rejection_rate == D("0.25")
        assert not history.has_payment_delays

    def test_rates_with_zero_total(self):
        history = CustomerDiscountHistory(total_requests=0, approved_requests=0, rejected_requests=0)
        assert history.approval_rate == D("0")
        assert history.rejection_rate == D("0")


class TestSalespersonDiscountHistory:
    def test_no_requests(self):
        assert SalespersonDiscountHistory.from_requests([]) is None

    def test_recent_rejection_trend(self):
        old = NOW - timedelta(days=45)
        history = SalespersonDiscountHistory.from_requests(
            [
                _request("10", "reject", created_at=old),
                _request("10", "approve", created_at=old),
                _request("20", "reject"),
                _request("20", "approve"),
            ],
            now=NOW,
        )
        assert history.total_requests == 4
        assert history.approved_requests == 2
        assert history.average_requested_discount == D("15")
        assert history.recent_rejection_trend == D("0.5")
        assert history.win_rate is None


class TestMargins:
    def test_margin_percentage(self):
        assert margin_percentage(D("90"), D("60")) == D("33.33")
        assert margin_percentage(D("50"), D("60")) == D("-20.00")
        assert margin_percentage(D("0"), D("60")) == D("0")

    def test_negative_inputs(self):
        with pytest.raises(DomainValidationError):
            margin_percentage(D("-1"), D("1"))

    def test_max_discount_for_margin(self):
        assert max_discount_for_margin(D("100"), D("60"), D("20")) == D("25.00")
        assert max_discount_for_margin(D("100"), D("60"), D("100")) == D("0")
        assert max_discount_for_margin(D("0"), D("60"), D("20")) == D("0")
        # cost already above the floor price → no room
        assert max_discount_for_margin(D("100"), D("95"), D("20")) == D("0.00")

    def test_estimated_margin_is_revenue_weighted(self):
        widget = Product(COMPANY, "Widget", D("100"), D("40"))
        gadget = Product(COMPANY, "Gadget", D("50"), D("20"))
        items = [
            DiscountRequestItem(widget.id, "Widget", 2, D("100"), D("10")),
            DiscountRequestItem(gadget.id, "Gadget", 1, D("50"), D("10")),
        ]
        # revenue 225, cost 160
        assert estimated_margin(items, {widget.id: widget, gadget.id: gadget}) == D("28.89")
        assert estimated_margin(items, {}) is None

    def test_item_margins(self):
        item = DiscountRequestItem(uuid.uuid4(), "Widget", 1, D("100"), D("10"))
        missing = DiscountRequestItem(uuid.uuid4(), "Other", 1, D("100"), D("10"))
        same_product = DiscountRequestItem(item.product_id, "Widget", 1, D("100"), D("25"))
        margins = item_margins([item, missing, same_product], {item.product_id: D("60")})
        assert margins == [D("33.33"), None, D("20.00")]
