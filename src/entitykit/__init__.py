"""entitykit — change-tracked record sets and diff-based write reconciliation."""

__version__ = "0.1.0"
