"""
Time-Locked Savings - Source Package

A console savings service: users move funds from their balance into
lock boxes that release back to the balance once a timestamp passes.

DESIGN PRINCIPLES:
1. Money is conserved: balance + locked funds only change by deposits
2. A lock box is released at most once
3. Every state change is auditable
4. Time is injected, never read ad hoc
5. Storage layer is swappable
"""

__version__ = "0.1.0"
__author__ = "Time-Locked Savings Team"
