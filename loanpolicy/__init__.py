"""Loan granting policy and retail item grouping analyses."""

__version__ = "1.0.0"
