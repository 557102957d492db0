"""
Discount Guardrails.

Components:
- params: Typed parameter schemas per rule type, decoded once per evaluation
- validator: Customer status, discount ceilings and margin floors
"""
