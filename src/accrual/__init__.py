"""Time-accruing ledger with a cross-domain transfer adapter."""

__version__ = "0.1.0"
