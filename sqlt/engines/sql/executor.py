"""
Template execution: render -> bind -> expand -> rebind -> execute -> scan.

``SQLT`` is the public surface. Every operation takes a template name, an
optional input value and an optional Context, and differs only in what it
does with the response:

- ``exec``: rows affected / last row id.
- ``get``: exactly one row scanned into a destination. Zero rows raise
  NotFoundError; more than one row raises MultipleRowsError.
- ``select``: all rows, in order, as a list (empty list for no rows).
- ``cursor`` / ``iterate``: one row at a time, for large or unbounded
  result sets; the cursor is closed on every exit path.

Any named bindvar (example: ``:my_field_name``) in a template is replaced
with the database's placeholder (``?``, ``$1..$N``, ``%s``...) and the
matching value from the input is passed as a parameter.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, NamedTuple

from sqlt.core.config import settings
from sqlt.core.context import Context, ensure_context
from sqlt.core.db.database import Cursor, Database, ExecResult
from sqlt.core.mapper import FieldMapper, default_mapper
from sqlt.core.trace import trace_statement
from sqlt.engines.sql.binder import bind_named
from sqlt.engines.sql.registry import TemplateRegistry
from sqlt.engines.sql.template_engine import SQLTemplateEngine
from sqlt.errors import (
    BindError,
    ExecutionError,
    ExpansionError,
    MultipleRowsError,
    NotFoundError,
    RebindError,
    SQLTError,
)
from sqlt.models import DataSource

_log = logging.getLogger(__name__)


class _Stop:
    def __repr__(self) -> str:
        return "STOP"


# Returned by an iterate() visitor to end iteration without an error
STOP = _Stop()


class Statement(NamedTuple):
    sql: str
    params: tuple[Any, ...]


@contextmanager
def _operation(operation: str, template: str) -> Iterator[None]:
    """Stamp the failing public operation and template onto sqlt errors."""
    try:
        yield
    except SQLTError as e:
        if e.operation is None:
            e.operation = operation
        if e.template is None:
            e.template = template
        raise


class Rows:
    """Pull-based cursor over the rows of one query.

    Iterating yields each row scanned into ``dest``. Use as a context manager,
    or call ``close()``; exhausting the iterator also closes it.
    """

    def __init__(
        self,
        db: Database,
        cursor: Cursor,
        ctx: Context,
        *,
        template: str,
        dest: Any = dict,
        mapper: FieldMapper = default_mapper,
        strict: bool = True,
        fetch_size: int = 256,
    ) -> None:
        self._db = db
        self._cursor = cursor
        self._ctx = ctx
        self._dest = dest
        self._mapper = mapper
        self._strict = strict
        self._fetch_size = fetch_size
        self.template = template
        self.columns = cursor.columns

    @property
    def closed(self) -> bool:
        return self._cursor.closed

    def raw(self) -> Iterator[Sequence[Any]]:
        """Unscanned row tuples, fetched ``fetch_size`` at a time."""
        try:
            while not self._cursor.closed:
                batch = self._db.fetch(self._cursor, self._fetch_size, self._ctx)
                if not batch:
                    break
                for row in batch:
                    self._ctx.check()
                    yield row
        finally:
            self.close()

    def scanner(self, row: Sequence[Any]) -> Callable[[Any], Any]:
        """A ``scan(dest)`` function bound to *row*."""

        def scan(dest: Any) -> Any:
            return self._mapper.scan(dest, self.columns, row, strict=self._strict)

        return scan

    def __iter__(self) -> Iterator[Any]:
        with _operation("cursor", self.template):
            for row in self.raw():
                yield self._mapper.scan(self._dest, self.columns, row, strict=self._strict)

    def close(self) -> None:
        self._cursor.close()

    def __enter__(self) -> Rows:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class SQLT:
    """Named SQL templates executed against one database."""

    def __init__(
        self,
        db: Database | DataSource | Any,
        registry: TemplateRegistry,
        *,
        debug: bool | None = None,
        mapper: FieldMapper | None = None,
        strict_columns: bool | None = None,
        fetch_size: int | None = None,
    ) -> None:
        if isinstance(db, DataSource):
            db = Database.connect(db)
        elif not isinstance(db, Database):
            db = Database(db)
        self.db: Database = db
        self.registry = registry
        self.engine = SQLTemplateEngine(registry, self.db.dialect)
        self.mapper = mapper or default_mapper
        self.debug = settings.DEBUG if debug is None else debug
        self.strict_columns = settings.STRICT_COLUMNS if strict_columns is None else strict_columns
        self.fetch_size = fetch_size or settings.FETCH_SIZE

    # ------------------------------------------------------------------
    # Statement pipeline
    # ------------------------------------------------------------------

    def execute_template(self, name: str, data: Any = None) -> Statement:
        """Render template *name* with *data* and return the final SQL and args."""
        with _operation("execute_template", name):
            return self._prepare(name, data)

    def _prepare(self, name: str, data: Any) -> Statement:
        sql = self.engine.render(name, data)
        _log.debug("Rendered SQL for %s: %s", name, sql)
        try:
            bound = bind_named(
                sql, data, mapper=self.mapper, backslash_escapes=self.db.backslash_escapes
            )
            expanded = self.db.expand_in(bound.sql, bound.params)
            final_sql = self.db.rebind(expanded.sql, len(expanded.params))
        except (BindError, ExpansionError, RebindError) as e:
            if self.debug:
                trace_statement(sql, [], template=name, error=e)
            raise
        return Statement(final_sql, self.db.encode(expanded.params))

    def _trace(self, stmt: Statement, name: str, error: BaseException | None = None) -> None:
        if self.debug:
            trace_statement(stmt.sql, stmt.params, template=name, error=error)

    def _query(self, name: str, data: Any, ctx: Context, stream: bool = False) -> Cursor:
        ctx.check()
        stmt = self._prepare(name, data)
        try:
            cursor = self.db.query_with_params(stmt.sql, stmt.params, ctx, stream=stream)
        except ExecutionError as e:
            self._trace(stmt, name, e)
            raise
        self._trace(stmt, name)
        return cursor

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def exec(self, name: str, data: Any = None, *, ctx: Context | None = None) -> ExecResult:
        """Execute a statement that returns no rows."""
        with _operation("exec", name):
            ctx = ensure_context(ctx)
            ctx.check()
            stmt = self._prepare(name, data)
            try:
                result = self.db.exec_with_params(stmt.sql, stmt.params, ctx)
            except ExecutionError as e:
                self._trace(stmt, name, e)
                raise
            self._trace(stmt, name)
            return result

    def get(self, name: str, dest: Any, data: Any = None, *, ctx: Context | None = None) -> Any:
        """Scan the single row of the query into *dest* and return it.

        *dest* may be a class (a new instance is returned), an instance
        (updated in place), ``dict`` or a scalar type for one-column rows.
        """
        with _operation("get", name):
            return self._get(name, dest, data, ensure_context(ctx))

    query_row = get

    def _get(self, name: str, dest: Any, data: Any, ctx: Context) -> Any:
        cursor = self._query(name, data, ctx)
        try:
            rows = self.db.fetch(cursor, 2, ctx)
        finally:
            cursor.close()
        if not rows:
            raise NotFoundError("no rows in result set")
        if len(rows) > 1:
            raise MultipleRowsError("expected one row, query returned more")
        return self.mapper.scan(dest, cursor.columns, rows[0], strict=self.strict_columns)

    def create(self, name: str, data: Any, *, ctx: Context | None = None) -> Any:
        """Insert a record and scan the returned row back into *data*."""
        with _operation("create", name):
            return self._get(name, data, data, ensure_context(ctx))

    def update(self, name: str, data: Any, *, ctx: Context | None = None) -> Any:
        """Update a record and scan the returned row back into *data*."""
        with _operation("update", name):
            return self._get(name, data, data, ensure_context(ctx))

    def select(
        self,
        name: str,
        dest: Any = dict,
        data: Any = None,
        *,
        into: list[Any] | None = None,
        ctx: Context | None = None,
    ) -> list[Any]:
        """All rows, in order, each scanned into a new *dest*.

        Rows are appended to *into* when given. Holds the whole result in
        memory; use ``iterate`` or ``cursor`` for large result sets.
        """
        with _operation("select", name):
            out: list[Any] = into if into is not None else []
            with self._rows(name, dest, data, ensure_context(ctx)) as rows:
                for row in rows.raw():
                    out.append(self.mapper.scan(dest, rows.columns, row, strict=self.strict_columns))
            return out

    query = select

    def _rows(
        self, name: str, dest: Any, data: Any, ctx: Context, stream: bool = False
    ) -> Rows:
        return Rows(
            self.db,
            self._query(name, data, ctx, stream),
            ctx,
            template=name,
            dest=dest,
            mapper=self.mapper,
            strict=self.strict_columns,
            fetch_size=self.fetch_size,
        )

    def cursor(
        self, name: str, dest: Any = dict, data: Any = None, *, ctx: Context | None = None
    ) -> Rows:
        """Start the query and return an open Rows cursor (close it when done)."""
        with _operation("cursor", name):
            return self._rows(name, dest, data, ensure_context(ctx), stream=True)

    def iterate(
        self,
        name: str,
        visitor: Callable[[Callable[[Any], Any]], Any],
        data: Any = None,
        *,
        ctx: Context | None = None,
    ) -> int:
        """Call ``visitor(scan)`` once per row, in order; return the number of visits.

        ``scan(dest)`` maps the current row onto *dest* and returns it. The
        visitor returns STOP to end early; an exception it raises propagates.
        The cursor is closed either way.
        """
        with _operation("iterate", name):
            visits = 0
            with self._rows(name, dict, data, ensure_context(ctx), stream=True) as rows:
                for row in rows.raw():
                    visits += 1
                    if visitor(rows.scanner(row)) is STOP:
                        break
            return visits


def new(
    db: Database | DataSource | Any,
    template_dir: str | Path | None = None,
    patterns: Sequence[str] | None = None,
    **options: Any,
) -> SQLT:
    """Build a SQLT from a directory of ``.sql`` templates (defaults from settings)."""
    registry = TemplateRegistry.from_directory(
        template_dir or settings.TEMPLATE_DIR, patterns or settings.TEMPLATE_PATTERNS
    )
    return SQLT(db, registry, **options)
