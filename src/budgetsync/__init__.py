"""Sync Plaid accounts and transactions into an export-ready shape."""

__version__ = "0.1.0"
