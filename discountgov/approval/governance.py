"""
AI Governance Settings — per-company controls on AI autonomy.

Read by the auto-approval gate on every evaluation. Presets mirror the
four profiles offered to administrators: conservative, balanced,
aggressive and disabled.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from discountgov.errors import GovernanceConfigError


class AIGovernanceSettings(BaseModel):
    """Governance thresholds. Field bounds are enforced on construction."""

    model_config = ConfigDict(frozen=True)

    ai_enabled: bool = True
    autonomy_level: int = Field(default=50, ge=0, le=100)
    max_risk_score_for_auto_approval: Decimal = Field(default=Decimal("60"), ge=0, le=100)
    min_confidence_for_auto_approval: Decimal = Field(default=Decimal("0.75"), ge=0, le=1)
    require_human_review: bool = False
    enable_audit: bool = True
    enable_explainability: bool = True
    max_auto_approval_discount: Decimal = Field(default=Decimal("15"), ge=0, le=100)
    enable_incremental_learning: bool = True
    retraining_frequency_days: int = Field(default=30, ge=0)

    @property
    def allows_auto_approval(self) -> bool:
        return self.ai_enabled and not self.require_human_review

    @property
    def autonomy_description(self) -> str:
        level = self.autonomy_level
        if level < 25:
            return "Conservative: AI recommends only, requires human approval for all decisions"
        if level < 50:
            return "Low: AI can auto-approve low-risk decisions within strict limits"
        if level < 75:
            return "Moderate: AI can auto-approve medium-risk decisions within guardrails"
        if level < 90:
            return "High: AI has broad autonomy, human approval only for high-risk cases"
        return "Full: AI has maximum autonomy within configured guardrails"

    # ── Presets ──────────────────────────────────────────────────────────

    @classmethod
    def conservative(cls) -> "AIGovernanceSettings":
        """AI recommends only; every decision goes to a person."""
        return cls(
            autonomy_level=10,
            max_risk_score_for_auto_approval=Decimal("0"),
            min_confidence_for_auto_approval=Decimal("1.0"),
            require_human_review=True,
            max_auto_approval_discount=Decimal("0"),
        )

    @classmethod
    def balanced(cls) -> "AIGovernanceSettings":
        return cls()

    @classmethod
    def aggressive(cls) -> "AIGovernanceSettings":
        return cls(
            autonomy_level=85,
            max_risk_score_for_auto_approval=Decimal("80"),
            min_confidence_for_auto_approval=Decimal("0.60"),
            max_auto_approval_discount=Decimal("30"),
            retraining_frequency_days=15,
        )

    @classmethod
    def disabled(cls) -> "AIGovernanceSettings":
        """AI off, manual approval only."""
        return cls(
            ai_enabled=False,
            autonomy_level=0,
            max_risk_score_for_auto_approval=Decimal("0"),
            min_confidence_for_auto_approval=Decimal("1.0"),
            require_human_review=True,
            enable_explainability=False,
            max_auto_approval_discount=Decimal("0"),
            enable_incremental_learning=False,
            retraining_frequency_days=0,
        )


PRESETS = {
    "conservative": AIGovernanceSettings.conservative,
    "balanced": AIGovernanceSettings.balanced,
    "aggressive": AIGovernanceSettings.aggressive,
    "disabled": AIGovernanceSettings.disabled,
}


def validate_governance_settings(settings: AIGovernanceSettings) -> list[str]:
    """Cross-field consistency checks. Field ranges are already enforced by the model."""
    errors: list[str] = []
    if settings.enable_incremental_learning and settings.retraining_frequency_days <= 0:
        errors.append(
            "Retraining frequency must be greater than 0 when incremental learning is enabled"
        )
    if settings.require_human_review and settings.autonomy_level > 50:
        errors.append(
            "Autonomy level should be low (<= 50) when requiring human review for all decisions"
        )
    if not settings.ai_enabled and settings.autonomy_level > 0:
        errors.append("Autonomy level should be 0 when AI is disabled")
    return errors


def ensure_valid_governance_settings(settings: AIGovernanceSettings) -> AIGovernanceSettings:
    errors = validate_governance_settings(settings)
    if errors:
        raise GovernanceConfigError(errors)
    return settings


_CHANGE_LABELS = {
    "ai_enabled": "AI Enabled",
    "autonomy_level": "Autonomy Level",
    "max_risk_score_for_auto_approval": "Max Risk Score",
    "min_confidence_for_auto_approval": "Min Confidence",
    "require_human_review": "Require Human Review",
    "enable_audit": "Enable Audit",
    "enable_explainability": "Enable Explainability",
    "max_auto_approval_discount": "Max Auto-Approval Discount",
    "enable_incremental_learning": "Enable Incremental Learning",
    "retraining_frequency_days": "Retraining Frequency",
}


def diff_governance_settings(
    old: AIGovernanceSettings, new: AIGovernanceSettings
) -> list[str]:
    """Human-readable list of changed settings, for the audit trail."""
    changes = []
    for name, label in _CHANGE_LABELS.items():
        before, after = getattr(old, name), getattr(new, name)
        if before != after:
            changes.append(f"{label}: {before} → {after}")
    return changes
