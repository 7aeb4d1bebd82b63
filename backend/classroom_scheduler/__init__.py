"""Recurring classroom session scheduling: expansion, materialization and check-in."""

__version__ = "0.1.0"
