"""
Historical aggregates — derived per evaluation from past discount requests.

Never persisted. `from_requests` returns None when there is no history so
scoring can fall back to its "unknown" defaults.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from discountgov.domain.models import DiscountRequest
from discountgov.domain.values import ZERO, utcnow

RECENT_WINDOW_DAYS: int = 30


@dataclass(frozen=True)
class CustomerDiscountHistory:
    total_requests: int
    approved_requests: int
    rejected_requests: int
    average_approved_discount: Decimal = ZERO
    max_approved_discount: Decimal = ZERO
    has_payment_delays: bool = False
    has_defaults: bool = False

    @property
    def approval_rate(self) -> Decimal:
        if self.total_requests <= 0:
            return ZERO
        return Decimal(self.approved_requests) / Decimal(self.total_requests)

    @property
    def rejection_rate(self) -> Decimal:
        if self.total_requests <= 0:
            return ZERO
        return Decimal(self.rejected_requests) / Decimal(self.total_requests)

    @classmethod
    def from_requests(
        cls, requests: Iterable[DiscountRequest]
    ) -> Optional["CustomerDiscountHistory"]:
        # Payment delay/default flags need a payment feed and stay False here.
        requests = list(requests)
        if not requests:
            return None
        approved = [r.requested_discount_percentage for r in requests if r.is_approved]
        return cls(
            total_requests=len(requests),
            approved_requests=len(approved),
            rejected_requests=sum(1 for r in requests if r.is_rejected),
            average_approved_discount=sum(approved, ZERO) / len(approved) if approved else ZERO,
            max_approved_discount=max(approved) if approved else ZERO,
        )


@dataclass(frozen=True)
class SalespersonDiscountHistory:
    total_requests: int
    approved_requests: int
    average_requested_discount: Decimal = ZERO
    win_rate: Optional[Decimal] = None
    recent_rejection_trend: Decimal = ZERO

    @property
    def approval_rate(self) -> Decimal:
        if self.total_requests <= 0:
            return ZERO
        return Decimal(self.approved_requests) / Decimal(self.total_requests)

    @classmethod
    def from_requests(
        cls,
        requests: Iterable[DiscountRequest],
        now: Optional[datetime] = None,
    ) -> Optional["SalespersonDiscountHistory"]:
        requests = list(requests)
        if not requests:
            return None
        cutoff = (now or utcnow()) - timedelta(days=RECENT_WINDOW_DAYS)
        recent = [r for r in requests if r.created_at >= cutoff]
        recent_rejected = sum(1 for r in recent if r.is_rejected)
        return cls(
            total_requests=len(requests),
            approved_requests=sum(1 for r in requests if r.is_approved),
            average_requested_discount=(
                sum((r.requested_discount_percentage for r in requests), ZERO) / len(requests)
            ),
            recent_rejection_trend=(
                Decimal(recent_rejected) / Decimal(len(recent)) if recent else ZERO
            ),
        )
