"""
Database collaborator: DB-API connections, per-database dialects and
context-aware statement execution.
"""

from .connect import connect, cursor_columns
from .database import Cursor, Database, ExecResult
from .dialect import Dialect, get_dialect

__all__ = [
    "connect",
    "cursor_columns",
    "Cursor",
    "Database",
    "ExecResult",
    "Dialect",
    "get_dialect",
]
