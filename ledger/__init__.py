"""
Minimal ledger service: client balances and atomic transfers between them.
"""

__version__ = "1.0.0"
