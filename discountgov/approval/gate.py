"""
Auto-Approval Gate — decides whether a request can skip human review.

All conditions must hold:
1. AI enabled and human review not required (otherwise stop here)
2. Guardrails passed
3. risk score <= max risk score (inclusive)
4. AI confidence >= min confidence, only when a confidence is present
5. requested discount <= max auto-approval discount
6. pre-approval safety checks passed, when the caller ran them

Conditions 2-6 are all evaluated. The first failure becomes the rejection
reason; every failure is kept in rejection_details. Active auto_approval
business rules can only tighten the governance thresholds.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

import structlog

from discountgov.approval.governance import AIGovernanceSettings
from discountgov.approval.safety import SafetyCheckResult
from discountgov.domain.enums import RuleType
from discountgov.domain.models import BusinessRule, User
from discountgov.domain.values import ZERO, Numeric, to_decimal, utcnow
from discountgov.guardrails.params import AutoApprovalParams, decode_rules
from discountgov.guardrails.validator import ValidationResult

logger = structlog.get_logger(__name__)

AI_DISABLED_REASON = "AI auto-approval disabled"


@dataclass(frozen=True)
class GateCondition:
    """Outcome of one gate condition."""
    name: str
    passed: bool
    reason: str
    threshold: Optional[Decimal] = None
    actual_value: Optional[Decimal] = None


@dataclass(frozen=True)
class ApprovalThresholds:
    max_risk_score: Decimal
    min_ai_confidence: Decimal
    max_discount: Decimal
    sources: tuple[str, ...] = ()


@dataclass(frozen=True)
class AutoApprovalEvaluation:
    can_auto_approve: bool
    risk_score: Decimal
    requested_discount: Decimal
    guardrails: ValidationResult
    max_risk_score_threshold: Decimal
    min_ai_confidence_threshold: Decimal
    max_discount_threshold: Decimal
    ai_confidence: Optional[Decimal] = None
    approval_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    rejection_details: tuple[str, ...] = ()
    conditions: tuple[GateCondition, ...] = ()
    evaluated_at: datetime = field(default_factory=utcnow)

    @property
    def reason(self) -> str:
        return self.approval_reason if self.can_auto_approve else (self.rejection_reason or "")


def effective_thresholds(
    settings: AIGovernanceSettings,
    rules: Iterable[BusinessRule] = (),
) -> ApprovalThresholds:
    """Governance thresholds tightened by any active auto_approval rules."""
    max_risk = settings.max_risk_score_for_auto_approval
    min_conf = settings.min_confidence_for_auto_approval
    max_disc = settings.max_auto_approval_discount
    sources: list[str] = []

    decoded, _ = decode_rules(r for r in rules if r.rule_type == RuleType.AUTO_APPROVAL)
    for d in decoded:
        params: AutoApprovalParams = d.params
        if params.max_risk_score is not None and params.max_risk_score < max_risk:
            max_risk = params.max_risk_score
            sources.append(d.name)
        if params.min_ai_confidence is not None and params.min_ai_confidence > min_conf:
            min_conf = params.min_ai_confidence
            sources.append(d.name)
        if params.max_discount_percentage is not None and params.max_discount_percentage < max_disc:
            max_disc = params.max_discount_percentage
            sources.append(d.name)

    return ApprovalThresholds(
        max_risk_score=max_risk,
        min_ai_confidence=min_conf,
        max_discount=max_disc,
        sources=tuple(dict.fromkeys(sources)),
    )


class AutoApprovalGate:
    """Evaluate auto-approval eligibility. Side-effect free."""

    def evaluate(
        self,
        requested_discount: Numeric,
        risk_score: Numeric,
        guardrails: ValidationResult,
        settings: AIGovernanceSettings,
        ai_confidence: Optional[Numeric] = None,
        rules: Iterable[BusinessRule] = (),
        safety: Optional[SafetyCheckResult] = None,
    ) -> AutoApprovalEvaluation:
        discount = to_decimal(requested_discount)
        risk = to_decimal(risk_score)
        confidence = None if ai_confidence is None else to_decimal(ai_confidence)
        thresholds = effective_thresholds(settings, rules)

        common = dict(
            risk_score=risk,
            requested_discount=discount,
            guardrails=guardrails,
            ai_confidence=confidence,
            max_risk_score_threshold=thresholds.max_risk_score,
            min_ai_confidence_threshold=thresholds.min_ai_confidence,
            max_discount_threshold=thresholds.max_discount,
        )

        # Condition 1 short-circuits everything else.
        if not settings.allows_auto_approval:
            detail = (
                "Human review is required for all decisions"
                if settings.ai_enabled
                else "AI is disabled for this company"
            )
            evaluation = AutoApprovalEvaluation(
                can_auto_approve=False,
                rejection_reason=AI_DISABLED_REASON,
                rejection_details=(detail,),
                conditions=(GateCondition("ai_enabled", False, detail),),
                **common,
            )
            self._log(evaluation)
            return evaluation

        conditions = [
            GateCondition(
                name="guardrails",
                passed=guardrails.is_valid,
                reason=(
                    "Business rules violated: " + "; ".join(guardrails.errors)
                    if not guardrails.is_valid
                    else "All business rules passed"
                ),
            ),
            GateCondition(
                name="risk_score",
                passed=risk <= thresholds.max_risk_score,
                reason=(
                    f"Risk score {risk:.1f} exceeds maximum {thresholds.max_risk_score:.1f}"
                    if risk > thresholds.max_risk_score
                    else f"Risk score {risk:.1f} within maximum {thresholds.max_risk_score:.1f}"
                ),
                threshold=thresholds.max_risk_score,
                actual_value=risk,
            ),
        ]
        if confidence is not None:
            conditions.append(
                GateCondition(
                    name="ai_confidence",
                    passed=confidence >= thresholds.min_ai_confidence,
                    reason=(
                        f"AI confidence {confidence:.2f} below minimum "
                        f"{thresholds.min_ai_confidence:.2f}"
                        if confidence < thresholds.min_ai_confidence
                        else f"AI confidence {confidence:.2f} meets minimum "
                        f"{thresholds.min_ai_confidence:.2f}"
                    ),
                    threshold=thresholds.min_ai_confidence,
                    actual_value=confidence,
                )
            )
        conditions.append(
            GateCondition(
                name="discount",
                passed=discount <= thresholds.max_discount,
                reason=(
                    f"Discount {discount}% exceeds auto-approval maximum {thresholds.max_discount}%"
                    if discount > thresholds.max_discount
                    else f"Discount {discount}% within auto-approval maximum {thresholds.max_discount}%"
                ),
                threshold=thresholds.max_discount,
                actual_value=discount,
            )
        )
        if safety is not None:
            conditions.append(
                GateCondition(
                    name="safety_checks",
                    passed=safety.passed,
                    reason=(
                        f"Safety check failed: {safety.reason}"
                        if not safety.passed
                        else "All safety checks passed"
                    ),
                )
            )

        failed = [c for c in conditions if not c.passed]
        if failed:
            details: list[str] = []
            for c in failed:
                if c.name == "guardrails":
                    details.extend(guardrails.errors)
                elif c.name == "safety_checks":
                    details.extend(safety.failures)
                else:
                    details.append(c.reason)
            evaluation = AutoApprovalEvaluation(
                can_auto_approve=False,
                rejection_reason=failed[0].reason,
                rejection_details=tuple(details),
                conditions=tuple(conditions),
                **common,
            )
        else:
            basis = f"risk {risk:.1f} <= {thresholds.max_risk_score:.1f}"
            if confidence is not None:
                basis += f", confidence {confidence:.2f} >= {thresholds.min_ai_confidence:.2f}"
            basis += f", discount {discount}% <= {thresholds.max_discount}%"
            evaluation = AutoApprovalEvaluation(
                can_auto_approve=True,
                approval_reason=f"Auto-approved: {basis}, all business rules passed",
                conditions=tuple(conditions),
                **common,
            )

        self._log(evaluation)
        return evaluation

    @staticmethod
    def _log(evaluation: AutoApprovalEvaluation) -> None:
        logger.info(
            "auto_approval_evaluated",
            approved=evaluation.can_auto_approve,
            risk_score=str(evaluation.risk_score),
            discount=str(evaluation.requested_discount),
            reason=evaluation.reason,
        )


def can_override_auto_rejection(evaluation: AutoApprovalEvaluation, user: User) -> bool:
    """Managers and admins may override a rejection, never a guardrail failure."""
    if not user.can_review_approvals:
        return False
    return evaluation.guardrails.is_valid


@dataclass(frozen=True)
class AutoApprovalStatistics:
    total_evaluations: int
    approved: int
    rejected: int
    approval_rate: Decimal
    average_risk_approved: Decimal
    average_risk_rejected: Decimal
    top_rejection_reasons: tuple[tuple[str, int], ...]

    @classmethod
    def from_evaluations(
        cls, evaluations: Sequence[AutoApprovalEvaluation], top: int = 5
    ) -> "AutoApprovalStatistics":
        approved = [e for e in evaluations if e.can_auto_approve]
        rejected = [e for e in evaluations if not e.can_auto_approve]

        def _avg(items: list[AutoApprovalEvaluation]) -> Decimal:
            return sum((e.risk_score for e in items), ZERO) / len(items) if items else ZERO

        reasons = Counter(e.rejection_reason for e in rejected if e.rejection_reason)
        return cls(
            total_evaluations=len(evaluations),
            approved=len(approved),
            rejected=len(rejected),
            approval_rate=(
                Decimal(len(approved)) / Decimal(len(evaluations)) if evaluations else ZERO
            ),
            average_risk_approved=_avg(approved),
            average_risk_rejected=_avg(rejected),
            top_rejection_reasons=tuple(reasons.most_common(top)),
        )
