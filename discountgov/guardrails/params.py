"""
Typed Business-Rule Parameters.

Each rule type has its own schema, decoded once when the rule set is
loaded. A payload that cannot be decoded makes the rule inactive for the
evaluation; it never raises into the validator.

Accepted keys (camelCase as stored by the admin UI, snake_case also works):
- discount_limit:  maxDiscountPercentage
- minimum_margin:  minMarginPercentage | minimumMarginPercentage
- auto_approval:   maxRiskScore, minAIConfidence, maxDiscountPercentage
"""

import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from discountgov.domain.enums import RuleType
from discountgov.domain.models import BusinessRule

logger = structlog.get_logger(__name__)


class _RuleParams(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class DiscountLimitParams(_RuleParams):
    max_discount_percentage: Decimal = Field(
        ge=0,
        le=100,
        validation_alias=AliasChoices("maxDiscountPercentage", "max_discount_percentage"),
    )


class MinimumMarginParams(_RuleParams):
    min_margin_percentage: Decimal = Field(
        ge=-100,
        le=100,
        validation_alias=AliasChoices(
            "minMarginPercentage",
            "minimumMarginPercentage",
            "min_margin_percentage",
        ),
    )


class AutoApprovalParams(_RuleParams):
    max_risk_score: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        validation_alias=AliasChoices("maxRiskScore", "max_risk_score"),
    )
    min_ai_confidence: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=1,
        validation_alias=AliasChoices("minAIConfidence", "minAiConfidence", "min_ai_confidence"),
    )
    max_discount_percentage: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        validation_alias=AliasChoices("maxDiscountPercentage", "max_discount_percentage"),
    )


RuleParams = Union[DiscountLimitParams, MinimumMarginParams, AutoApprovalParams]

PARAMS_BY_TYPE: dict[RuleType, type[_RuleParams]] = {
    RuleType.DISCOUNT_LIMIT: DiscountLimitParams,
    RuleType.MINIMUM_MARGIN: MinimumMarginParams,
    RuleType.AUTO_APPROVAL: AutoApprovalParams,
}


class RuleParameterError(ValueError):
    """A rule's parameter payload does not match its type's schema."""

    def __init__(self, rule: BusinessRule, reason: str):
        super().__init__(f"Rule '{rule.name}' has unparseable parameters: {reason}")
        self.rule = rule
        self.reason = reason


@dataclass(frozen=True)
class DecodedRule:
    rule: BusinessRule
    params: RuleParams

    @property
    def name(self) -> str:
        return self.rule.name


def parse_parameters(rule: BusinessRule) -> RuleParams:
    """Decode one rule's payload. Raises RuleParameterError."""
    schema = PARAMS_BY_TYPE.get(rule.rule_type)
    if schema is None:
        raise RuleParameterError(rule, f"unsupported rule type {rule.rule_type!r}")

    raw: Any = rule.parameters
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            raise RuleParameterError(rule, f"invalid JSON ({exc.msg})") from exc
    if not isinstance(raw, dict):
        raise RuleParameterError(rule, "payload is not an object")

    try:
        return schema.model_validate(raw)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in e["loc"]) or "payload" for e in exc.errors())
        raise RuleParameterError(rule, f"invalid fields: {fields}") from exc


def decode_rules(rules: Iterable[BusinessRule]) -> tuple[list[DecodedRule], list[str]]:
    """
    Decode every active rule.

    Returns:
        (decoded_rules, warnings) — one warning per rule skipped because its
        parameters could not be decoded.
    """
    decoded: list[DecodedRule] = []
    warnings: list[str] = []
    for rule in rules:
        if not rule.is_active:
            continue
        try:
            decoded.append(DecodedRule(rule=rule, params=parse_parameters(rule)))
        except RuleParameterError as exc:
            logger.warning(
                "rule_parameters_unparseable",
                rule_id=str(rule.id),
                rule_name=rule.name,
                rule_type=rule.rule_type.value,
                reason=exc.reason,
            )
            warnings.append(f"Rule '{rule.name}' ignored: {exc.reason}")
    return decoded, warnings
