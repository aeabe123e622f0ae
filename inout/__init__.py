"""
In-Out Ledger Engine - Source Package

The ingestion and recurrence core of a personal income/expense tracker.

DESIGN PRINCIPLES:
1. Untrusted input degrades gracefully, never silently corrupts
2. One batch, one commit
3. Generation is idempotent across repeated runs
4. Every batch is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "In-Out Team"
