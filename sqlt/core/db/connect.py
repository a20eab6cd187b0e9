"""
Open DB-API connections from a DataSource.

Uses psycopg (PostgreSQL), pymysql (MySQL), trino (Trino) or sqlite3 based on
product_type. Connections are opened in autocommit mode: transactions are the
caller's business, not the engine's.
"""

import sqlite3
from typing import Any

import psycopg
import pymysql
from trino.auth import BasicAuthentication
from trino.dbapi import connect as trino_connect

from sqlt.core.config import settings
from sqlt.models import DEFAULT_PORTS, DataSource, ProductTypeEnum


def _get(datasource: Any, key: str) -> Any:
    """Get attribute or dict key from DataSource, dict, or Pydantic model."""
    if isinstance(datasource, dict):
        return datasource.get(key)
    return getattr(datasource, key, None)


def resolve_product_type(
    datasource: Any, product_type: ProductTypeEnum | None = None
) -> ProductTypeEnum:
    pt = product_type or _get(datasource, "product_type")
    if pt is None:
        raise ValueError("product_type is required (from datasource or argument)")
    return ProductTypeEnum(pt)


def connect(
    datasource: DataSource | dict[str, Any],
    *,
    product_type: ProductTypeEnum | None = None,
) -> Any:
    """
    Open a connection from a DataSource model or a dict with the same keys.

    - product_type: override when datasource is a dict without product_type.
    """
    pt = resolve_product_type(datasource, product_type)
    database = _get(datasource, "database")
    if database is None:
        raise ValueError("datasource must provide database")

    timeout = settings.DB_CONNECT_TIMEOUT

    if pt == ProductTypeEnum.SQLITE:
        # isolation_level=None: autocommit
        return sqlite3.connect(
            database,
            timeout=timeout,
            isolation_level=None,
            check_same_thread=False,
        )

    host = _get(datasource, "host")
    port = _get(datasource, "port") or DEFAULT_PORTS[pt]
    username = _get(datasource, "username")
    password = _get(datasource, "password")
    password = password if password is not None else ""

    for name, val in [("host", host), ("username", username)]:
        if val is None:
            raise ValueError(f"datasource must provide {name}")

    if pt == ProductTypeEnum.POSTGRES:
        return psycopg.connect(
            host=host,
            port=int(port),
            dbname=database,
            user=username,
            password=password,
            connect_timeout=timeout,
            autocommit=True,
        )
    if pt == ProductTypeEnum.MYSQL:
        return pymysql.connect(
            host=host,
            port=int(port),
            database=database,
            user=username,
            password=password,
            connect_timeout=timeout,
            autocommit=True,
        )
    if pt == ProductTypeEnum.TRINO:
        use_ssl = _get(datasource, "use_ssl") in (True, "true", "1")
        if use_ssl and not (password and password.strip()):
            raise ValueError("Password is required for Trino when using SSL/HTTPS.")
        return trino_connect(
            host=host,
            port=int(port),
            user=username,
            auth=BasicAuthentication(username, password) if use_ssl else None,
            catalog=database,
            schema="default",
            source="sqlt",
            http_scheme="https" if use_ssl else "http",
            request_timeout=timeout,
        )
    raise ValueError(f"Unsupported product_type: {pt}")


def cursor_columns(cursor: Any) -> list[str]:
    """Column names of the current result set (empty when there is none)."""
    desc = cursor.description
    if not desc:
        return []
    return [d[0] for d in desc]
