"""Duplicate detection for imported rows."""

from inout.matching.duplicates import DuplicateDetector

__all__ = ["DuplicateDetector"]
