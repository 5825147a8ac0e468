"""Electricity cost tracking and free-market savings reconciliation."""

__version__ = "0.3.0"
