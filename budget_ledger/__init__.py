"""
Budget Ledger

The transactional core of a personal budgeting app: accounts, monthly
budget items, recurring bills and savings goals kept jointly consistent.

DESIGN PRINCIPLES:
1. Every balance change and its ledger record commit together or not at all
2. Reads happen before writes inside a transaction, always
3. Recurring bills post at most once per month, however often they run
4. Invalid input is rejected before the store is touched
5. The document store is swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Ledger Team"
