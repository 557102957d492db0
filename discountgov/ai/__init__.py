"""
AI Port and Resilience.

Components:
- schemas: Request/response models of the AI contract
- port: AIService protocol implemented by model backends
- circuit_breaker: Consecutive-failure breaker per operation
- cache: TTL response cache keyed by operation + payload hash
- metrics: Prometheus counters and in-process percentiles
- fallback: Deterministic rule-based answers
- resilient: The wrapper every caller goes through
"""
