"""
Persistence Ports.

Components:
- interfaces: Abstract repositories consumed by the workflows
- memory: Dict-backed implementations for tests and local wiring
"""
