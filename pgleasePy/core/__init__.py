"""
Core building blocks used by Connection.
"""

from .statement_cache import StatementCache

__all__ = ["StatementCache"]
