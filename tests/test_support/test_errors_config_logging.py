"""
Ambient Stack Tests — error payloads, settings loading and logging setup.
"""

import json
import logging

import structlog

from discountgov.config import Settings
from discountgov.errors import (
    DiscountGovError,
    ErrorCode,
    GuardrailViolationError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    TenantMismatchError,
)
from discountgov.guardrails.validator import ValidationResult
from discountgov.logconfig import configure_logging


class TestErrors:
    def test_base_error_dict(self):
        err = DiscountGovError("boom")
        assert err.to_dict() == {"code": "E1000", "message": "boom", "details": {}}

    def test_not_found(self):
        err = NotFoundError("Customer", "abc")
        assert err.code == ErrorCode.NOT_FOUND
        assert err.details == {"entity": "Customer", "entity_id": "abc"}
        assert str(err) == "Customer abc not found"

    def test_tenant_mismatch(self):
        err = TenantMismatchError("Product", "p1", "c1")
        assert err.code == ErrorCode.TENANT_MISMATCH
        assert err.details["company_id"] == "c1"

    def test_permission_denied_code(self):
        assert PermissionDeniedError("no").to_dict()["code"] == "E2000"

    def test_invalid_transition(self):
        err = InvalidTransitionError("approved", "reject")
        assert "approved" in err.message
        assert err.details == {"current_status": "approved", "action": "reject"}

    def test_guardrail_violation_carries_result(self):
        result = ValidationResult.of(errors=["cap"], warnings=["w"])
        err = GuardrailViolationError(result)
        assert err.result is result
        assert err.details == {"errors": ["cap"], "warnings": ["w"]}
        assert isinstance(err, DiscountGovError)


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.ai_recommend_timeout == 2.0
        assert s.ai_train_timeout == 30.0
        assert s.ai_availability_timeout == 0.5
        assert s.cache_explain_ttl == 900
        assert s.breaker_failure_threshold == 5
        assert s.breaker_recovery_timeout == 30.0

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("AI_RECOMMEND_TIMEOUT", "1.25")
        monkeypatch.setenv("LOG_FORMAT", "json")
        s = Settings()
        assert s.ai_recommend_timeout == 1.25
        assert s.log_format == "json"


class TestLogging:
    def teardown_method(self):
        structlog.reset_defaults()

    def test_json_rendering(self, caplog):
        caplog.set_level(logging.INFO)
        configure_logging(level="INFO", fmt="json")
        structlog.get_logger("discountgov.test").info("circuit_opened", breaker="recommend_discount")
        event = json.loads(caplog.records[-1].getMessage())
        assert event["event"] == "circuit_opened"
        assert event["breaker"] == "recommend_discount"
        assert event["level"] == "info"
        assert "timestamp" in event
