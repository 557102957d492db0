"""
Discount Approval Policy.

Components:
- governance: Per-company AI governance settings, presets and consistency checks
- safety: Hard pre-approval limits (active parties, order size, negative margin)
- gate: Auto-approval decision, override permission and statistics
"""
