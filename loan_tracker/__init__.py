"""
Loan Tracker - Source Package

A personal loan-tracking assistant: who owes what, what has been paid,
and what is scheduled next.

DESIGN PRINCIPLES:
1. Totals are always derived from the transaction list, never typed in
2. Storage layer is swappable (memory, JSON file, Google Sheets)
3. Shared links disclose only what the link itself allows
4. Every user action is auditable
5. Bad stored data fails closed, never crashes the app
"""

__version__ = "1.0.0"
__author__ = "Loan Tracker Team"
