"""Nexus credits and rewards ledger."""

__version__ = "0.1.0"
