"""
Discount Governance Domain Model.

Components:
- enums: Status, role, scope and risk-level enumerations
- values: Decimal helpers shared by every layer
- models: Entities (company, user, customer, product, request, rule, approval)
- history: Customer and salesperson aggregates derived from past requests
- margin: Margin and maximum-discount calculations
"""
