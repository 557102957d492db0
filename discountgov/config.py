"""
DiscountGov Configuration.

Pydantic Settings v2 — loads from .env, environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = "DiscountGov"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # ── Logging ───────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")

    # ── AI Timeouts (seconds) ─────────────────────────────────────────────
    ai_recommend_timeout: float = Field(default=2.0, alias="AI_RECOMMEND_TIMEOUT")
    ai_risk_timeout: float = Field(default=2.0, alias="AI_RISK_TIMEOUT")
    ai_explain_timeout: float = Field(default=2.0, alias="AI_EXPLAIN_TIMEOUT")
    ai_train_timeout: float = Field(default=30.0, alias="AI_TRAIN_TIMEOUT")
    ai_availability_timeout: float = Field(default=0.5, alias="AI_AVAILABILITY_TIMEOUT")
    ai_governance_timeout: float = Field(default=2.0, alias="AI_GOVERNANCE_TIMEOUT")

    # ── AI Response Cache (seconds) ───────────────────────────────────────
    cache_recommend_ttl: int = Field(default=300, alias="CACHE_RECOMMEND_TTL")
    cache_risk_ttl: int = Field(default=300, alias="CACHE_RISK_TTL")
    cache_explain_ttl: int = Field(default=900, alias="CACHE_EXPLAIN_TTL")
    cache_max_entries: int = Field(default=10_000, alias="CACHE_MAX_ENTRIES")

    # ── Circuit Breaker ───────────────────────────────────────────────────
    breaker_failure_threshold: int = Field(default=5, alias="BREAKER_FAILURE_THRESHOLD")
    breaker_recovery_timeout: float = Field(default=30.0, alias="BREAKER_RECOVERY_TIMEOUT")

    # ── Metrics ───────────────────────────────────────────────────────────
    metrics_max_samples: int = Field(default=1000, alias="METRICS_MAX_SAMPLES")

    # ── Fallback Recommendation ───────────────────────────────────────────
    fallback_discount_percentage: float = Field(default=5.0, alias="FALLBACK_DISCOUNT_PERCENTAGE")
    fallback_margin_percentage: float = Field(default=20.0, alias="FALLBACK_MARGIN_PERCENTAGE")
    fallback_confidence: float = Field(default=0.5, alias="FALLBACK_CONFIDENCE")

    # ── Auto-Approval Safety Limits ───────────────────────────────────────
    auto_approval_max_order_value: float = Field(
        default=100_000.0, alias="AUTO_APPROVAL_MAX_ORDER_VALUE"
    )
    auto_approval_max_items: int = Field(default=50, alias="AUTO_APPROVAL_MAX_ITEMS")


settings = Settings()
