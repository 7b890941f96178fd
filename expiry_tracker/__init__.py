"""Expiring-record tracker for large paginated registry tables."""

__version__ = "1.0.0"
