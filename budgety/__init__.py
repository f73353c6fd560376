"""
Budgety - Source Package

A family budget tracker: shared expenses, monthly and category budgets,
recurring expense templates and spending reports, served over REST.

DESIGN PRINCIPLES:
1. Every family-scoped action is checked against membership and role
2. Money is truncated, never rounded, on every entry path
3. The relational store is the single source of truth
4. Scheduled work is an explicit, lock-guarded job
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Budgety Team"
