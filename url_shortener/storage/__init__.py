"""
Persistent store module.

Relational storage of URL records and click analytics, behind a strategy
interface so the service and the worker never touch SQLAlchemy directly.
"""

from .strategies import URLStoreStrategy, SQLAlchemyURLStore, FlushReport

__all__ = [
    "URLStoreStrategy",
    "SQLAlchemyURLStore",
    "FlushReport",
]
