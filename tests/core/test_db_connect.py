"""Unit tests for core.db.connect (drivers are patched; no server needed)."""

import importlib
import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from sqlt import Database, DataSource, ProductTypeEnum
from sqlt.core.db import connect, cursor_columns
from sqlt.core.db.dialect import PostgresDialect, SQLiteDialect
from sqlt.models import BindTypeEnum

# the package re-exports connect(), which hides the submodule attribute
connect_module = importlib.import_module("sqlt.core.db.connect")


def _pg_datasource(**kw) -> DataSource:
    return DataSource(
        name="pg",
        product_type=ProductTypeEnum.POSTGRES,
        host="db.local",
        database="app",
        username="app",
        password="secret",
        **kw,
    )


@patch("psycopg.connect")
def test_connect_postgres(mock_connect: MagicMock) -> None:
    conn = connect(_pg_datasource())
    assert conn is mock_connect.return_value
    kwargs = mock_connect.call_args.kwargs
    assert kwargs["host"] == "db.local"
    assert kwargs["port"] == 5432
    assert kwargs["dbname"] == "app"
    assert kwargs["autocommit"] is True


@patch("pymysql.connect")
def test_connect_mysql_from_dict(mock_connect: MagicMock) -> None:
    connect(
        {
            "product_type": "mysql",
            "host": "h",
            "port": 3307,
            "database": "d",
            "username": "u",
            "password": None,
        }
    )
    kwargs = mock_connect.call_args.kwargs
    assert kwargs["port"] == 3307
    assert kwargs["password"] == ""
    assert kwargs["database"] == "d"


@patch.object(connect_module, "trino_connect")
def test_connect_trino_ssl_requires_password(mock_connect: MagicMock) -> None:
    ds = {"product_type": "trino", "host": "h", "database": "hive", "username": "u", "use_ssl": True}
    with pytest.raises(ValueError, match="Password is required"):
        connect(ds)
    mock_connect.assert_not_called()


@patch.object(connect_module, "trino_connect")
def test_connect_trino(mock_connect: MagicMock) -> None:
    connect({"product_type": "trino", "host": "h", "database": "hive", "username": "u"})
    kwargs = mock_connect.call_args.kwargs
    assert kwargs["catalog"] == "hive"
    assert kwargs["port"] == 8080
    assert kwargs["http_scheme"] == "http"
    assert kwargs["auth"] is None


def test_connect_requires_host() -> None:
    with pytest.raises(ValueError, match="host"):
        connect({"product_type": "postgres", "database": "d", "username": "u"})


def test_connect_requires_product_type() -> None:
    with pytest.raises(ValueError, match="product_type"):
        connect({"database": "d"})


def test_connect_sqlite() -> None:
    conn = connect(DataSource(product_type="sqlite", database=":memory:"))
    try:
        assert isinstance(conn, sqlite3.Connection)
        assert conn.isolation_level is None
    finally:
        conn.close()


@patch("psycopg.connect")
def test_database_connect_uses_product_defaults(mock_connect: MagicMock) -> None:
    db = Database.connect(_pg_datasource())
    assert isinstance(db.dialect, PostgresDialect)
    assert db.bindtype == BindTypeEnum.FORMAT


@patch("psycopg.connect")
def test_database_connect_bindtype_override(mock_connect: MagicMock) -> None:
    db = Database.connect(_pg_datasource(bindtype=BindTypeEnum.DOLLAR))
    assert db.bindtype == BindTypeEnum.DOLLAR


def test_database_detects_sqlite(conn) -> None:
    db = Database(conn)
    assert isinstance(db.dialect, SQLiteDialect)
    assert db.product_type == ProductTypeEnum.SQLITE


def test_cursor_columns() -> None:
    cur = MagicMock()
    cur.description = [("id", None), ("name", None)]
    assert cursor_columns(cur) == ["id", "name"]
    cur.description = None
    assert cursor_columns(cur) == []
