"""Use-case level logic.

These modules implement the invoice form workflow (validation, submission,
error classification, list filtering) on top of the integrations.

They should be:
- deterministic
- unit-testable
- free of rendering code
"""
