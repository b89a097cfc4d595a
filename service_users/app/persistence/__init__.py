"""
Persistence package for Users Service.
"""

from .postgres import PostgreSQLUserStore

__all__ = ["PostgreSQLUserStore"]
