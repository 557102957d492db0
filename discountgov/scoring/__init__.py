"""
Discount Risk Scoring.

Components:
- primitives: Customer, deviation, salesperson and margin sub-scores
- aggregator: Fixed-weight combination and risk-level mapping
"""
