"""
Group Ledger - Source Package

Shared-expense groups: record who paid for what, derive who owes whom,
and settle up.

DESIGN PRINCIPLES:
1. Balances are derived from history, never stored
2. Balances of a group always sum to exactly zero
3. Fail early, fail visibly: invalid input rejects the whole operation
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Group Ledger Team"
