import sqlite3
from collections.abc import Generator

import pytest

from sqlt import SQLT, Database, TemplateRegistry

PEOPLE_TEMPLATES = {
    "people/schema": (
        "CREATE TABLE people ("
        " id INTEGER PRIMARY KEY,"
        " name TEXT NOT NULL,"
        " city TEXT,"
        " age INTEGER NOT NULL DEFAULT 0"
        ")"
    ),
    "people/insert": "INSERT INTO people (name, city, age) VALUES (:name, :city, :age)",
    "people/get": "SELECT id, name, city, age FROM people WHERE id = :id",
    "people/all": "SELECT id, name, city, age FROM people ORDER BY id",
    "people/by_city": (
        "SELECT id, name, city, age FROM people"
        " WHERE city IN (:cities) AND age > :age ORDER BY id"
    ),
    "people/search": (
        "SELECT id, name FROM people"
        " {% where %}{% if name is defined %}AND name = :name{% endif %}{% endwhere %}"
        " ORDER BY id"
    ),
    "people/count": "SELECT count(*) AS n FROM people",
    "value": "select :v as v",
    "path_and_id": "select {{ p }} as p, :id as id",
    "broken": "selec 1",
    "slow": (
        "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c WHERE x < 100000000)"
        " SELECT max(x) FROM c"
    ),
}

PEOPLE = [
    {"name": "Ann", "city": "Tampa", "age": 30},
    {"name": "Bob", "city": "Rio", "age": 99},
    {"name": "Cid", "city": "Tampa", "age": 99},
    {"name": "Dee", "city": "Paris", "age": 120},
]


@pytest.fixture
def conn() -> Generator[sqlite3.Connection, None, None]:
    c = sqlite3.connect(":memory:", isolation_level=None)
    yield c
    c.close()


@pytest.fixture
def registry() -> TemplateRegistry:
    return TemplateRegistry.from_mapping(PEOPLE_TEMPLATES)


@pytest.fixture
def lib(conn: sqlite3.Connection, registry: TemplateRegistry) -> SQLT:
    s = SQLT(Database(conn), registry, debug=False)
    s.exec("people/schema")
    for person in PEOPLE:
        s.exec("people/insert", person)
    return s
