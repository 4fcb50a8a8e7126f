"""Karla delivery integration: webhook receiver, order push and catalog sync."""

__version__ = "1.0.0"
