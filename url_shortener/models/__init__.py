"""
Database models for URL shortener.

URL records and their click analytics live in the same relational store so a
batch flush can update counters and insert analytics rows in one transaction.
"""

from .url import URL
from .analytics import Analytics

__all__ = ["URL", "Analytics"]
