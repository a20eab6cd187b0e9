"""Tests for engines.sql.executor against an in-memory SQLite database."""

import logging
import threading
import time
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from sqlt import (
    SQLT,
    STOP,
    Array,
    BindError,
    BindTypeEnum,
    Canceled,
    Context,
    Database,
    DataSource,
    DeadlineExceeded,
    ExecResult,
    ExecutionError,
    ExpansionError,
    MultipleRowsError,
    NotFoundError,
    RenderError,
    ScanError,
    Statement,
    TemplateNotFound,
    TemplateRegistry,
)


class Person(BaseModel):
    id: int
    name: str
    city: str | None = None
    age: int = 0


@dataclass
class Name:
    id: int = 0
    name: str = ""


class SpyDatabase(Database):
    """Records every cursor the executor opens."""

    def __init__(self, conn):
        super().__init__(conn)
        self.cursors = []
        self.streamed = []

    def query_with_params(self, sql, params, ctx=None, *, stream=False):
        cur = super().query_with_params(sql, params, ctx, stream=stream)
        self.cursors.append(cur)
        self.streamed.append(stream)
        return cur


class TestExecuteTemplate:
    def test_value_round_trip(self, lib: SQLT):
        assert lib.execute_template("value", {"v": 5}) == Statement("select ? as v", (5,))

    def test_in_list_expanded(self, lib: SQLT):
        stmt = lib.execute_template("people/by_city", {"cities": ["Tampa", "Rio"], "age": 98})
        assert "city IN (?, ?) AND age > ?" in stmt.sql
        assert stmt.params == ("Tampa", "Rio", 98)

    def test_dollar_bindtype(self, conn, registry):
        s = SQLT(Database(conn, bindtype=BindTypeEnum.DOLLAR), registry)
        assert s.execute_template("value", {"v": 1}) == Statement("select $1 as v", (1,))

    def test_bind_error_carries_operation(self, lib: SQLT):
        with pytest.raises(BindError) as exc:
            lib.execute_template("value", {"x": 1})
        assert exc.value.operation == "execute_template"
        assert exc.value.template == "value"


class TestGet:
    def test_scalar(self, lib: SQLT):
        assert lib.get("value", int, {"v": 5}) == 5
        assert lib.get("people/count", int) == 4

    def test_dict(self, lib: SQLT):
        assert lib.get("people/get", dict, {"id": 1}) == {
            "id": 1,
            "name": "Ann",
            "city": "Tampa",
            "age": 30,
        }

    def test_model(self, lib: SQLT):
        assert lib.get("people/get", Person, {"id": 2}) == Person(id=2, name="Bob", city="Rio", age=99)

    def test_existing_instance_updated_in_place(self, lib: SQLT):
        p = Person(id=0, name="?")
        assert lib.query_row("people/get", p, {"id": 3}) is p
        assert p.name == "Cid"

    def test_not_found(self, lib: SQLT):
        with pytest.raises(NotFoundError) as exc:
            lib.get("people/get", Person, {"id": 99})
        assert exc.value.operation == "get"
        assert exc.value.template == "people/get"

    def test_multiple_rows(self, lib: SQLT):
        with pytest.raises(MultipleRowsError):
            lib.get("people/all", Person)

    def test_strict_columns(self, lib: SQLT):
        with pytest.raises(ScanError):
            lib.get("people/get", Name, {"id": 1})

    def test_lenient_columns(self, conn, registry, lib: SQLT):
        s = SQLT(Database(conn), registry, strict_columns=False)
        assert s.get("people/get", Name, {"id": 1}) == Name(1, "Ann")

    def test_literal_ending_in_backslash(self, lib: SQLT):
        row = lib.get("path_and_id", dict, {"p": "C:\\", "id": 7})
        assert row == {"p": "C:\\", "id": 7}


class TestSelect:
    def test_in_list(self, lib: SQLT):
        people = lib.select("people/by_city", Person, {"cities": ["Tampa", "Rio"], "age": 98})
        assert [p.name for p in people] == ["Bob", "Cid"]

    def test_no_rows_is_empty_list(self, lib: SQLT):
        assert lib.select("people/by_city", dict, {"cities": ["Oslo"], "age": 0}) == []

    def test_into_appends(self, lib: SQLT):
        out = [Person(id=0, name="seed")]
        res = lib.query("people/all", Person, into=out)
        assert res is out
        assert [p.name for p in out] == ["seed", "Ann", "Bob", "Cid", "Dee"]

    def test_where_block(self, lib: SQLT):
        assert len(lib.select("people/search", dict, {})) == 4
        assert lib.select("people/search", dict, {"name": "Dee"}) == [{"id": 4, "name": "Dee"}]

    def test_array_not_expanded(self, lib: SQLT):
        stmt = lib.execute_template("value", {"v": Array([1, 2])})
        assert stmt == Statement("select ? as v", ([1, 2],))

    def test_empty_sequence(self, lib: SQLT):
        with pytest.raises(ExpansionError) as exc:
            lib.select("people/by_city", dict, {"cities": [], "age": 0})
        assert exc.value.operation == "select"

    def test_small_fetch_size(self, conn, registry, lib: SQLT):
        s = SQLT(Database(conn), registry, fetch_size=1)
        assert [r["name"] for r in s.select("people/all")] == ["Ann", "Bob", "Cid", "Dee"]


class TestExec:
    def test_rowcount_and_lastrowid(self, lib: SQLT):
        res = lib.exec("people/insert", {"name": "Eve", "city": None, "age": 1})
        assert res == ExecResult(1, 5)
        assert lib.get("people/count", int) == 5

    def test_model_input(self, lib: SQLT):
        lib.exec("people/insert", Person(id=0, name="Fay", city="Oslo", age=7))
        assert lib.get("people/get", Person, {"id": 5}).city == "Oslo"

    def test_bind_error(self, lib: SQLT):
        with pytest.raises(BindError) as exc:
            lib.exec("people/insert", {"name": "x"})
        assert exc.value.operation == "exec"
        assert exc.value.template == "people/insert"
        assert str(exc.value).startswith("exec people/insert: ")

    def test_database_error(self, lib: SQLT):
        with pytest.raises(ExecutionError) as exc:
            lib.exec("broken")
        assert type(exc.value) is ExecutionError
        assert exc.value.operation == "exec"
        assert exc.value.__cause__ is not None

    def test_unknown_template(self, lib: SQLT):
        with pytest.raises(TemplateNotFound) as exc:
            lib.exec("nope")
        assert exc.value.operation == "exec"

    def test_render_error(self, conn):
        s = SQLT(Database(conn), TemplateRegistry.from_mapping({"bad": "SELECT {{ nope }}"}))
        with pytest.raises(RenderError) as exc:
            s.exec("bad", {})
        assert exc.value.operation == "exec"
        assert exc.value.template == "bad"


class TestCursorAndIterate:
    def test_cursor_yields_scanned_rows_and_closes(self, lib: SQLT):
        rows = lib.cursor("people/all", Person)
        assert rows.columns == ["id", "name", "city", "age"]
        assert [p.id for p in rows] == [1, 2, 3, 4]
        assert rows.closed

    def test_cursor_context_manager(self, lib: SQLT):
        with lib.cursor("people/all") as rows:
            first = next(iter(rows))
        assert first["name"] == "Ann"
        assert rows.closed

    def test_iterate_visits_in_order(self, lib: SQLT):
        seen = []
        n = lib.iterate("people/all", lambda scan: seen.append(scan(Person).name))
        assert n == 4
        assert seen == ["Ann", "Bob", "Cid", "Dee"]

    def test_iterate_stop(self, conn, registry, lib: SQLT):
        db = SpyDatabase(conn)
        s = SQLT(db, registry)
        seen = []

        def visit(scan):
            seen.append(scan(dict)["id"])
            if len(seen) == 2:
                return STOP
            return None

        assert s.iterate("people/all", visit) == 2
        assert seen == [1, 2]
        assert db.cursors[-1].closed

    def test_iterate_visitor_error_propagates(self, conn, registry, lib: SQLT):
        db = SpyDatabase(conn)
        s = SQLT(db, registry)

        def visit(scan):
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            s.iterate("people/all", visit)
        assert db.cursors[-1].closed

    def test_iterate_no_rows(self, lib: SQLT):
        assert lib.iterate("people/by_city", lambda scan: None, {"cities": ["Oslo"], "age": 0}) == 0

    def test_cancel_while_iterating(self, conn, registry, lib: SQLT):
        db = SpyDatabase(conn)
        s = SQLT(db, registry)
        ctx = Context.background()

        def visit(scan):
            ctx.cancel()

        with pytest.raises(Canceled) as exc:
            s.iterate("people/all", visit, ctx=ctx)
        assert exc.value.operation == "iterate"
        assert db.cursors[-1].closed

    def test_only_cursor_and_iterate_stream(self, conn, registry, lib: SQLT):
        db = SpyDatabase(conn)
        s = SQLT(db, registry)
        s.select("people/all")
        s.get("people/count", int)
        s.cursor("people/all").close()
        s.iterate("people/all", lambda scan: None)
        assert db.streamed == [False, False, True, True]


class TestContext:
    def test_expired_before_start(self, lib: SQLT):
        with pytest.raises(DeadlineExceeded) as exc:
            lib.get("people/count", int, ctx=Context.with_deadline(time.monotonic() - 1))
        assert exc.value.operation == "get"

    def test_canceled_before_start(self, lib: SQLT):
        ctx = Context.background()
        ctx.cancel()
        with pytest.raises(Canceled):
            lib.exec("people/insert", {"name": "x", "city": None, "age": 1}, ctx=ctx)
        assert lib.get("people/count", int) == 4

    def test_deadline_interrupts_slow_query(self, lib: SQLT):
        start = time.monotonic()
        with pytest.raises(DeadlineExceeded):
            lib.get("slow", int, ctx=Context.with_timeout(0.05))
        assert time.monotonic() - start < 5

    def test_cancel_from_another_thread(self, lib: SQLT):
        ctx = Context.background()
        timer = threading.Timer(0.05, ctx.cancel)
        timer.start()
        try:
            with pytest.raises(Canceled):
                lib.get("slow", int, ctx=ctx)
        finally:
            timer.cancel()

    def test_generous_deadline(self, lib: SQLT):
        assert lib.get("people/count", int, ctx=Context.with_timeout(30)) == 4


class TestDebugTrace:
    def test_success_and_failure_traced(self, conn, registry, caplog):
        s = SQLT(Database(conn), registry, debug=True)
        caplog.set_level(logging.INFO, logger="sqlt.trace")
        s.get("value", dict, {"v": "it's"})
        with pytest.raises(ExecutionError):
            s.exec("broken")
        messages = [r.getMessage() for r in caplog.records if r.name == "sqlt.trace"]
        assert messages[0] == "value: select ? as v ['it''s']"
        assert messages[1].startswith("broken failed (")

    def test_off_by_default(self, lib: SQLT, caplog):
        caplog.set_level(logging.INFO, logger="sqlt.trace")
        lib.get("value", dict, {"v": 1})
        assert not [r for r in caplog.records if r.name == "sqlt.trace"]


class TestDataSource:
    def test_sqlite_datasource(self, registry):
        s = SQLT(
            DataSource(product_type="sqlite", database=":memory:"),
            registry,
        )
        try:
            s.exec("people/schema")
            s.exec("people/insert", {"name": "a", "city": "b", "age": 1})
            assert s.get("people/count", int) == 1
        finally:
            s.db.close()
