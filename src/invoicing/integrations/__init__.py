"""Integration adapters for external systems (invoices backend, QBO connect).

Keep these modules small and testable:
- No rendering concerns
- Pure IO + parsing helpers
"""
