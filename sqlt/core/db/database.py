"""
Database collaborator consumed by the executor.

Wraps one DB-API connection with its dialect: executes positional statements
under a Context (statement timeout + cancel hook), rewrites placeholders,
expands IN lists and encodes parameters.
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any, NamedTuple

from sqlt.core.config import settings
from sqlt.core.context import Context, ensure_context
from sqlt.core.db.connect import connect, cursor_columns, resolve_product_type
from sqlt.core.db.dialect import Dialect, detect_product_type, get_dialect
from sqlt.engines.sql.binder import Bound
from sqlt.engines.sql.expander import expand_in
from sqlt.engines.sql.rebind import rebind
from sqlt.errors import DeadlineExceeded, ExecutionError
from sqlt.models import BindTypeEnum, DataSource, ProductTypeEnum

_log = logging.getLogger(__name__)


class ExecResult(NamedTuple):
    rowcount: int
    lastrowid: Any


class Cursor:
    """A DB-API cursor plus the cleanup (timeout reset, cancel hook) of its statement."""

    def __init__(self, cursor: Any, cleanup: Callable[[], None]) -> None:
        self._cursor = cursor
        self._cleanup = cleanup
        self._closed = False
        self.columns = cursor_columns(cursor)

    def fetchmany(self, size: int) -> list[Sequence[Any]]:
        return self._cursor.fetchmany(size)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        finally:
            self._cleanup()


class Database:
    """One connection, one dialect."""

    def __init__(
        self,
        conn: Any,
        product_type: ProductTypeEnum | str | None = None,
        *,
        bindtype: BindTypeEnum | None = None,
        dialect: Dialect | None = None,
    ) -> None:
        self.conn = conn
        if dialect is None:
            pt = product_type if product_type is not None else detect_product_type(conn)
            dialect = get_dialect(pt, bindtype)
        self.dialect = dialect

    @classmethod
    def connect(cls, datasource: DataSource | dict[str, Any]) -> "Database":
        pt = resolve_product_type(datasource)
        bindtype = (
            datasource.get("bindtype") if isinstance(datasource, dict) else datasource.bindtype
        )
        return cls(connect(datasource), pt, bindtype=BindTypeEnum(bindtype) if bindtype else None)

    @property
    def product_type(self) -> ProductTypeEnum | None:
        return self.dialect.product_type

    @property
    def bindtype(self) -> BindTypeEnum:
        return self.dialect.bindtype

    def close(self) -> None:
        self.conn.close()

    # ------------------------------------------------------------------
    # Statement preparation helpers
    # ------------------------------------------------------------------

    @property
    def backslash_escapes(self) -> bool:
        return self.dialect.backslash_escapes

    def expand_in(self, sql: str, params: list[Any]) -> Bound:
        return expand_in(sql, params, backslash_escapes=self.backslash_escapes)

    def rebind(self, sql: str, param_count: int | None = None) -> str:
        return rebind(
            sql, self.dialect.bindtype, param_count, backslash_escapes=self.backslash_escapes
        )

    def encode(self, params: Sequence[Any]) -> tuple[Any, ...]:
        return tuple(self.dialect.encode(p) for p in params)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _timeout(self, ctx: Context) -> float | None:
        remaining = ctx.remaining()
        if remaining is not None:
            return remaining
        return settings.DB_STATEMENT_TIMEOUT or None

    def _start(
        self, sql: str, params: Sequence[Any], ctx: Context, stream: bool = False
    ) -> tuple[Any, Callable[[], None]]:
        """Run *sql* on a new cursor; returns the cursor and its cleanup.

        The cleanup never raises: a failed reset is logged so the caller sees
        the statement's own error.
        """
        ctx.check()
        cur = self.dialect.streaming_cursor(self.conn) if stream else self.conn.cursor()
        reset: Callable[[], None] = lambda: None
        unregister: Callable[[], None] = lambda: None

        def cleanup() -> None:
            unregister()
            try:
                reset()
            except Exception as e:
                _log.warning("Could not reset statement timeout: %s", e)

        try:
            reset = self.dialect.apply_timeout(self.conn, ctx, self._timeout(ctx))
            unregister = ctx.on_cancel(lambda: self.dialect.interrupt(self.conn, cur))
            cur.execute(sql, tuple(params))
        except Exception as e:
            err = self._wrap(e, sql, ctx)
            try:
                cur.close()
            except Exception as close_exc:
                _log.debug("Could not close failed cursor: %s", close_exc)
            cleanup()
            raise err from e
        return cur, cleanup

    def _wrap(self, exc: Exception, sql: str, ctx: Context) -> ExecutionError:
        err = ctx.err()
        if err is not None:
            _log.warning("SQL aborted by context: %s", err)
            return err
        if self.dialect.is_timeout(exc):
            _log.warning("SQL query timed out: %s", exc)
            return DeadlineExceeded(f"statement timeout: {exc}")
        _log.error("SQL execution failed: %s. SQL: %s", exc, sql, exc_info=True)
        return ExecutionError(f"SQL execution failed: {exc}")

    def exec_with_params(
        self, sql: str, params: Sequence[Any], ctx: Context | None = None
    ) -> ExecResult:
        ctx = ensure_context(ctx)
        cur, cleanup = self._start(sql, params, ctx)
        try:
            rowcount = cur.rowcount if cur.rowcount is not None else 0
            return ExecResult(rowcount, getattr(cur, "lastrowid", None))
        finally:
            try:
                cur.close()
            finally:
                cleanup()

    def query_with_params(
        self,
        sql: str,
        params: Sequence[Any],
        ctx: Context | None = None,
        *,
        stream: bool = False,
    ) -> Cursor:
        """Start a query; the returned Cursor must be closed by the caller.

        With *stream* the dialect's unbuffered cursor is used, so rows are
        pulled from the server as they are fetched. Only row-returning
        statements may be streamed.
        """
        ctx = ensure_context(ctx)
        cur, cleanup = self._start(sql, params, ctx, stream)
        return Cursor(cur, cleanup)

    def fetch(self, cursor: Cursor, size: int, ctx: Context) -> list[Sequence[Any]]:
        """Fetch up to *size* rows, mapping driver failures like execute does."""
        ctx.check()
        try:
            return cursor.fetchmany(size)
        except Exception as e:
            raise self._wrap(e, "<fetch>", ctx) from e
