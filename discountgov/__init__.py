"""
DiscountGov — Discount-Approval Governance Core.

Architecture:
    discountgov/
    ├── domain/          # Entities, enums, history aggregates, margin math
    ├── scoring/         # Risk sub-scores and weighted aggregation
    ├── guardrails/      # Typed rule parameters + business-rule validator
    ├── approval/        # Governance settings, safety checks, auto-approval gate
    ├── ai/              # AI port, resilience wrapper, cache, breaker, fallback
    ├── repos/           # Repository ports + in-memory adapters
    └── workflows/       # Create, auto-approve, review, decide and learning use cases

Module Boundaries:
    - Scoring, guardrails and the gate are pure and synchronous
    - The AI wrapper is the only shared mutable state (cache, breakers, metrics)
    - AI failures never reach a workflow; they degrade to rule-based fallback
    - Pure layers return violations as values; workflows raise DiscountGovError subclasses

Data Flow:
    Request → Guardrails → Risk (AI | fallback) → Safety checks → Gate → Approval
    → Manager review / override
    Decided requests → Incremental learning → Model training

Version: 1.0.0
"""

__version__ = "1.0.0"
