"""
Tamerun - Household Finance Tracker

A small personal finance assistant for recording income and expenses,
browsing a monthly calendar history, and tracking savings goals.

DESIGN PRINCIPLES:
1. Validate before anything is sent to the store
2. Derived numbers (totals, progress) are computed, never stored
3. Every store call is scoped to the signed-in owner
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Tamerun Team"
