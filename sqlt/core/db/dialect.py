"""
Per-database strategies: placeholder style, literal quoting, parameter
encoding, streaming cursors, statement timeouts and in-flight interruption.

Adding a database means adding one Dialect subclass and registering it in
``DIALECTS``; nothing else in the pipeline changes.
"""

import logging
import sqlite3
import time
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import psycopg
import pymysql
import pymysql.cursors
from psycopg.pq import TransactionStatus

from sqlt.core.context import Context
from sqlt.models import DEFAULT_BINDTYPES, BindTypeEnum, ProductTypeEnum

_log = logging.getLogger(__name__)

# MySQL: "Query execution was interrupted, maximum statement execution time exceeded"
_MYSQL_MAX_EXECUTION_TIME = 3024


def _noop() -> None:
    return None


class Dialect:
    """Generic DB-API behaviour: ``?`` markers, no timeout support."""

    product_type: ProductTypeEnum | None = None
    bindtype: BindTypeEnum = BindTypeEnum.QUESTION
    identifier_quote = '"'
    # Backslash escapes the next character inside quoted strings
    backslash_escapes = False

    def __init__(self, bindtype: BindTypeEnum | None = None) -> None:
        if bindtype is not None:
            self.bindtype = bindtype
        elif self.product_type is not None:
            self.bindtype = DEFAULT_BINDTYPES[self.product_type]

    def encode(self, value: Any) -> Any:
        """Convert a parameter into something the driver accepts."""
        if isinstance(value, Enum):
            return value.value
        return value

    def streaming_cursor(self, conn: Any) -> Any:
        """Cursor that fetches rows on demand instead of buffering the result."""
        return conn.cursor()

    def apply_timeout(self, conn: Any, ctx: Context, seconds: float | None) -> Callable[[], None]:
        """Bound the next statement; returns a function that undoes it."""
        return _noop

    def interrupt(self, conn: Any, cursor: Any) -> None:
        """Abort the statement running on *conn* (called from ``Context.cancel``)."""
        return None

    def is_timeout(self, exc: BaseException) -> bool:
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(bindtype={self.bindtype.value})"


def _ms(seconds: float) -> int:
    return max(1, int(seconds * 1000))


class PostgresDialect(Dialect):
    product_type = ProductTypeEnum.POSTGRES

    def apply_timeout(self, conn: Any, ctx: Context, seconds: float | None) -> Callable[[], None]:
        if not seconds:
            return _noop
        # set_config() accepts bind parameters; SET does not under server-side binding
        with conn.cursor() as cur:
            cur.execute("SELECT set_config('statement_timeout', %s, false)", (str(_ms(seconds)),))

        def _reset() -> None:
            # Rolling back the failed transaction also undoes set_config()
            if conn.info.transaction_status == TransactionStatus.INERROR:
                return
            with conn.cursor() as cur:
                cur.execute("SELECT set_config('statement_timeout', '0', false)")

        return _reset

    def streaming_cursor(self, conn: Any) -> Any:
        # Server-side cursor; WITH HOLD lets it outlive the implicit
        # transaction of an autocommit connection
        return conn.cursor(name=f"sqlt_{uuid4().hex}", withhold=bool(conn.autocommit))

    def interrupt(self, conn: Any, cursor: Any) -> None:
        conn.cancel()

    def is_timeout(self, exc: BaseException) -> bool:
        return isinstance(exc, psycopg.errors.QueryCanceled)


class MySQLDialect(Dialect):
    """max_execution_time only bounds SELECT statements; DML runs unbounded."""

    product_type = ProductTypeEnum.MYSQL
    identifier_quote = "`"
    backslash_escapes = True

    def streaming_cursor(self, conn: Any) -> Any:
        return conn.cursor(pymysql.cursors.SSCursor)

    def encode(self, value: Any) -> Any:
        if isinstance(value, UUID):
            return str(value)
        return super().encode(value)

    def apply_timeout(self, conn: Any, ctx: Context, seconds: float | None) -> Callable[[], None]:
        if not seconds:
            return _noop
        with conn.cursor() as cur:
            cur.execute("SET SESSION max_execution_time = %s", (_ms(seconds),))

        def _reset() -> None:
            with conn.cursor() as cur:
                cur.execute("SET SESSION max_execution_time = 0")

        return _reset

    def is_timeout(self, exc: BaseException) -> bool:
        return (
            isinstance(exc, pymysql.err.OperationalError)
            and bool(exc.args)
            and exc.args[0] == _MYSQL_MAX_EXECUTION_TIME
        )


class TrinoDialect(Dialect):
    product_type = ProductTypeEnum.TRINO

    def encode(self, value: Any) -> Any:
        if isinstance(value, UUID):
            return str(value)
        return super().encode(value)

    def apply_timeout(self, conn: Any, ctx: Context, seconds: float | None) -> Callable[[], None]:
        if not seconds:
            return _noop
        cur = conn.cursor()
        try:
            cur.execute("SET SESSION query_max_execution_time = '%ds'" % max(1, int(seconds)))
        finally:
            cur.close()

        def _reset() -> None:
            cur_reset = conn.cursor()
            try:
                cur_reset.execute("RESET SESSION query_max_execution_time")
            finally:
                cur_reset.close()

        return _reset

    def interrupt(self, conn: Any, cursor: Any) -> None:
        if cursor is not None:
            cursor.cancel()


class SQLiteDialect(Dialect):
    """Deadline and cancellation enforced through the progress handler."""

    product_type = ProductTypeEnum.SQLITE

    # SQLite VM instructions between progress callbacks
    PROGRESS_STEPS = 1000

    def encode(self, value: Any) -> Any:
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, Decimal):
            return str(value)
        return super().encode(value)

    def apply_timeout(self, conn: Any, ctx: Context, seconds: float | None) -> Callable[[], None]:
        stop_at = time.monotonic() + seconds if seconds else None

        def _progress() -> int:
            if ctx.done or (stop_at is not None and time.monotonic() >= stop_at):
                return 1
            return 0

        conn.set_progress_handler(_progress, self.PROGRESS_STEPS)

        def _reset() -> None:
            conn.set_progress_handler(None, 0)

        return _reset

    def interrupt(self, conn: Any, cursor: Any) -> None:
        conn.interrupt()

    def is_timeout(self, exc: BaseException) -> bool:
        return isinstance(exc, sqlite3.OperationalError) and "interrupted" in str(exc)


DIALECTS: dict[ProductTypeEnum, type[Dialect]] = {
    ProductTypeEnum.POSTGRES: PostgresDialect,
    ProductTypeEnum.MYSQL: MySQLDialect,
    ProductTypeEnum.TRINO: TrinoDialect,
    ProductTypeEnum.SQLITE: SQLiteDialect,
}


def get_dialect(
    product_type: ProductTypeEnum | str | None, bindtype: BindTypeEnum | None = None
) -> Dialect:
    if product_type is None:
        return Dialect(bindtype)
    pt = ProductTypeEnum(product_type)
    return DIALECTS[pt](bindtype)


def detect_product_type(conn: Any) -> ProductTypeEnum | None:
    """Guess the product type from a DB-API connection's class."""
    if isinstance(conn, sqlite3.Connection):
        return ProductTypeEnum.SQLITE
    if isinstance(conn, psycopg.Connection):
        return ProductTypeEnum.POSTGRES
    if isinstance(conn, pymysql.connections.Connection):
        return ProductTypeEnum.MYSQL
    module = type(conn).__module__ or ""
    if module.startswith("trino"):
        return ProductTypeEnum.TRINO
    _log.debug("Unknown connection type %s; using generic dialect", type(conn).__qualname__)
    return None
