"""
Cashbook - Source Package

A small-office cashbook that records deposits, withdrawals and petty
cash against user-defined categories.

DESIGN PRINCIPLES:
1. Storage layer is swappable (MongoDB, embedded SQLite, in-memory)
2. Fall back to a working backend rather than refuse to start
3. Fail visibly when nothing works
4. Never delete a category that is still in use
5. Every storage transition and write is auditable
"""

__version__ = "1.0.0"
__author__ = "Cashbook Team"
