"""Course intelligence extraction and reconciliation engine."""

__version__ = "0.1.0"
