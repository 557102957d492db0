"""
Domain enums for the discount governance core.
"""

from enum import StrEnum


class DiscountRequestStatus(StrEnum):
    UNDER_ANALYSIS = "under_analysis"
    APPROVED = "approved"
    REJECTED = "rejected"
    ADJUSTMENT_REQUESTED = "adjustment_requested"
    AUTO_APPROVED_BY_AI = "auto_approved_by_ai"


class ApprovalDecision(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_ADJUSTMENT = "request_adjustment"


class ApprovalSource(StrEnum):
    HUMAN = "human"
    AI = "ai"


class CustomerStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BLOCKED = "blocked"
    PROSPECT = "prospect"


class CustomerClassification(StrEnum):
    A = "A"
    B = "B"
    C = "C"
    UNCLASSIFIED = "unclassified"


class UserRole(StrEnum):
    SALESPERSON = "salesperson"
    MANAGER = "manager"
    ADMIN = "admin"


class UserStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class CompanyStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class ProductStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class RuleType(StrEnum):
    MINIMUM_MARGIN = "minimum_margin"
    DISCOUNT_LIMIT = "discount_limit"
    AUTO_APPROVAL = "auto_approval"


class RuleScope(StrEnum):
    GLOBAL = "global"
    PRODUCT = "product"
    CATEGORY = "category"
    CUSTOMER = "customer"
    USER_ROLE = "user_role"


class RiskLevel(StrEnum):
    """Discrete risk band. Ordered: LOW < MEDIUM < HIGH < VERY_HIGH."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]


_RISK_RANK = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.VERY_HIGH: 3,
}


class TrainingType(StrEnum):
    INCREMENTAL = "incremental"
    FULL = "full"
