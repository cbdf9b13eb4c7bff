"""
Trip Finance - Source Package

A shared financial planner for a couple saving for a trip abroad:
income entries, expense categories, investments, a savings goal,
derived summaries and an AI assistant that comments on the numbers.

DESIGN PRINCIPLES:
1. Derived numbers are always recomputed, never stored
2. Fail early, fail visibly
3. No silent corrections of user data
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Trip Finance Team"
