"""
sqlt: named Jinja2 SQL templates rendered with a typed input, bound to
positional parameters, rewritten for the target database and executed, with
rows scanned back into pydantic models, dataclasses or dicts.

    db = sqlt.new(sqlite3.connect("app.db"), "sql")
    user = db.get("user/get", User, {"id": user_id})
"""

from sqlt.core.context import Context
from sqlt.core.db import Database, ExecResult
from sqlt.core.mapper import FieldMapper
from sqlt.engines.sql import (
    Array,
    FileSystemSource,
    MappingSource,
    PackageSource,
    TemplateRegistry,
)
from sqlt.engines.sql.executor import SQLT, STOP, Rows, Statement, new
from sqlt.errors import (
    BindError,
    Canceled,
    DeadlineExceeded,
    ExecutionError,
    ExpansionError,
    MultipleRowsError,
    NotFoundError,
    RebindError,
    RenderError,
    ScanError,
    SQLTError,
    TemplateNotFound,
    TemplateParseError,
)
from sqlt.models import BindTypeEnum, DataSource, ProductTypeEnum

__all__ = [
    "SQLT",
    "STOP",
    "Array",
    "BindError",
    "BindTypeEnum",
    "Canceled",
    "Context",
    "DataSource",
    "Database",
    "DeadlineExceeded",
    "ExecResult",
    "ExecutionError",
    "ExpansionError",
    "FieldMapper",
    "FileSystemSource",
    "MappingSource",
    "MultipleRowsError",
    "NotFoundError",
    "PackageSource",
    "ProductTypeEnum",
    "RebindError",
    "RenderError",
    "Rows",
    "SQLTError",
    "ScanError",
    "Statement",
    "TemplateNotFound",
    "TemplateParseError",
    "TemplateRegistry",
    "new",
]
