"""
Business-Rule Parameter Decoding Tests.
"""

import uuid
from decimal import Decimal

import pytest

from discountgov.domain.enums import RuleType
from discountgov.domain.models import BusinessRule
from discountgov.guardrails.params import (
    AutoApprovalParams,
    DiscountLimitParams,
    MinimumMarginParams,
    RuleParameterError,
    decode_rules,
    parse_parameters,
)

COMPANY = uuid.uuid4()


def _rule(rule_type, parameters, name="Rule", is_active=True):
    return BusinessRule(
        company_id=COMPANY,
        name=name,
        rule_type=rule_type,
        parameters=parameters,
        is_active=is_active,
    )


class TestParseParameters:
    def test_discount_limit_camel_case(self):
        params = parse_parameters(_rule(RuleType.DISCOUNT_LIMIT, '{"maxDiscountPercentage": 15}'))
        assert isinstance(params, DiscountLimitParams)
        assert params.max_discount_percentage == Decimal("15")

    def test_discount_limit_snake_case_mapping(self):
        params = parse_parameters(_rule(RuleType.DISCOUNT_LIMIT, {"max_discount_percentage": "12.5"}))
        assert params.max_discount_percentage == Decimal("12.5")

    @pytest.mark.parametrize(
        "payload", ['{"minMarginPercentage": 20}', '{"minimumMarginPercentage": 20}']
    )
    def test_minimum_margin_aliases(self, payload):
        params = parse_parameters(_rule(RuleType.MINIMUM_MARGIN, payload))
        assert isinstance(params, MinimumMarginParams)
        assert params.min_margin_percentage == Decimal("20")

    def test_auto_approval_fields_optional(self):
        params = parse_parameters(_rule(RuleType.AUTO_APPROVAL, '{"maxRiskScore": 40}'))
        assert isinstance(params, AutoApprovalParams)
        assert params.max_risk_score == Decimal("40")
        assert params.min_ai_confidence is None
        assert params.max_discount_percentage is None

    def test_unknown_keys_ignored(self):
        params = parse_parameters(
            _rule(RuleType.DISCOUNT_LIMIT, '{"maxDiscountPercentage": 10, "note": "x"}')
        )
        assert params.max_discount_percentage == Decimal("10")

    def test_invalid_json(self):
        with pytest.raises(RuleParameterError, match="invalid JSON"):
            parse_parameters(_rule(RuleType.DISCOUNT_LIMIT, "{max: 10"))

    def test_missing_required_field(self):
        with pytest.raises(RuleParameterError, match="invalid fields"):
            parse_parameters(_rule(RuleType.DISCOUNT_LIMIT, "{}"))

    def test_out_of_range_value(self):
        with pytest.raises(RuleParameterError):
            parse_parameters(_rule(RuleType.DISCOUNT_LIMIT, '{"maxDiscountPercentage": 150}'))

    def test_non_object_payload(self):
        with pytest.raises(RuleParameterError, match="not an object"):
            parse_parameters(_rule(RuleType.DISCOUNT_LIMIT, "[10]"))


class TestDecodeRules:
    def test_bad_rules_become_warnings(self):
        good = _rule(RuleType.DISCOUNT_LIMIT, '{"maxDiscountPercentage": 10}', name="Cap")
        bad = _rule(RuleType.DISCOUNT_LIMIT, "not json", name="Broken")
        decoded, warnings = decode_rules([good, bad])
        assert [d.name for d in decoded] == ["Cap"]
        assert len(warnings) == 1
        assert "Broken" in warnings[0]

    def test_inactive_rules_skipped_silently(self):
        inactive = _rule(RuleType.DISCOUNT_LIMIT, "not json", is_active=False)
        decoded, warnings = decode_rules([inactive])
        assert decoded == []
        assert warnings == []
