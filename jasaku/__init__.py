"""JASAKU booking and payment reconciliation service."""

__version__ = "0.1.0"
