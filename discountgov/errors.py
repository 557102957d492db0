"""
DiscountGov Exceptions.

Centralized exception definitions with:
- Error codes for client handling
- Structured details for audit and logging

Business violations inside the decision core (guardrail breaches, gate
rejections) are returned as values. These exceptions cover the cases where
a workflow cannot continue: missing entities, illegal state transitions,
permission problems and invalid configuration.
"""

from enum import Enum
from typing import Any, Optional


# ============================================================================
# ERROR CODES
# ============================================================================


class ErrorCode(str, Enum):
    """Application error codes."""

    # General errors (1xxx)
    INTERNAL_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    NOT_FOUND = "E1002"
    CONFLICT = "E1003"

    # Authorization errors (2xxx)
    PERMISSION_DENIED = "E2000"
    TENANT_MISMATCH = "E2001"

    # Workflow errors (4xxx)
    INVALID_TRANSITION = "E4000"
    GUARDRAIL_VIOLATION = "E4001"

    # Configuration errors (6xxx)
    INVALID_GOVERNANCE_SETTINGS = "E6000"


# ============================================================================
# BASE EXCEPTION
# ============================================================================


class DiscountGovError(Exception):
    """Base exception for the discount governance core."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# ============================================================================
# SPECIFIC EXCEPTIONS
# ============================================================================


class DomainValidationError(DiscountGovError):
    """Input data violates a domain invariant."""

    code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, field: Optional[str] = None, **details: Any):
        if field:
            details["field"] = field
        super().__init__(message, details=details)
        self.field = field


class NotFoundError(DiscountGovError):
    """A required entity does not exist."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "entity_id": str(entity_id)},
        )
        self.entity = entity
        self.entity_id = entity_id


class TenantMismatchError(DiscountGovError):
    """An entity belongs to a different company than the one requested."""

    code = ErrorCode.TENANT_MISMATCH

    def __init__(self, entity: str, entity_id: Any, company_id: Any):
        super().__init__(
            f"{entity} {entity_id} does not belong to company {company_id}",
            details={
                "entity": entity,
                "entity_id": str(entity_id),
                "company_id": str(company_id),
            },
        )


class PermissionDeniedError(DiscountGovError):
    """The acting user may not perform the operation."""

    code = ErrorCode.PERMISSION_DENIED


class InvalidTransitionError(DiscountGovError):
    """A discount request cannot move from its current status."""

    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, current: str, action: str):
        super().__init__(
            f"Cannot {action} a discount request with status '{current}'",
            details={"current_status": current, "action": action},
        )
        self.current = current
        self.action = action


class GuardrailViolationError(DiscountGovError):
    """Blocking business rules prevent the request from being created."""

    code = ErrorCode.GUARDRAIL_VIOLATION

    def __init__(self, result):
        super().__init__(
            "Discount request blocked by business rules: " + "; ".join(result.errors),
            details={"errors": list(result.errors), "warnings": list(result.warnings)},
        )
        self.result = result


class GovernanceConfigError(DiscountGovError):
    """AI governance settings are internally inconsistent."""

    code = ErrorCode.INVALID_GOVERNANCE_SETTINGS

    def __init__(self, errors: list[str]):
        super().__init__(
            "Invalid governance settings: " + "; ".join(errors),
            details={"errors": list(errors)},
        )
        self.errors = errors
