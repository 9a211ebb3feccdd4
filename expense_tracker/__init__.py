"""
Expense Tracker - Source Package

A multi-tenant expense tracker core: accounts, a shared category
taxonomy, and private per-owner expenses.

DESIGN PRINCIPLES:
1. Authenticate → Authorize → Check ownership → Write
2. Fail early, fail visibly
3. No partial effects after a failed check
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
