"""Patient Compliance Engine test suite.

Tests run against a real in-memory database and enforce:
- Exactly one audited decision per access check
- Append-only status and consent histories
- Retention rules before any deletion
"""
