"""
Connection models and enums.

DataSource describes how to reach a database; it is a plain (non-table)
SQLModel so it validates like a schema and can be built from a dict or env.
"""

from enum import Enum

from sqlmodel import Field, SQLModel


class ProductTypeEnum(str, Enum):
    """Supported database product types."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    TRINO = "trino"
    SQLITE = "sqlite"


class BindTypeEnum(str, Enum):
    """Native placeholder syntax of a driver.

    QUESTION: ``?`` (sqlite3, trino); DOLLAR: ``$1..$N`` (asyncpg, libpq);
    NAMED: ``:arg1..:argN`` (oracle); AT: ``@p1..@pN`` (sql server);
    FORMAT: ``%s`` (psycopg, pymysql).
    """

    QUESTION = "question"
    DOLLAR = "dollar"
    NAMED = "named"
    AT = "at"
    FORMAT = "format"


DEFAULT_BINDTYPES: dict[ProductTypeEnum, BindTypeEnum] = {
    ProductTypeEnum.POSTGRES: BindTypeEnum.FORMAT,
    ProductTypeEnum.MYSQL: BindTypeEnum.FORMAT,
    ProductTypeEnum.TRINO: BindTypeEnum.QUESTION,
    ProductTypeEnum.SQLITE: BindTypeEnum.QUESTION,
}

DEFAULT_PORTS: dict[ProductTypeEnum, int] = {
    ProductTypeEnum.POSTGRES: 5432,
    ProductTypeEnum.MYSQL: 3306,
    ProductTypeEnum.TRINO: 8080,
}


class DataSource(SQLModel):
    """Connection settings for one database.

    For SQLite only ``database`` is used (a file path or ``:memory:``).
    """

    name: str = Field(default="default", max_length=255)
    product_type: ProductTypeEnum
    host: str | None = Field(default=None, max_length=255)
    port: int | None = Field(default=None, ge=1, le=65535)
    database: str = Field(max_length=1024)
    username: str | None = Field(default=None, max_length=255)
    password: str = Field(default="", max_length=512)
    use_ssl: bool = Field(
        default=False,
        description="For Trino: use HTTPS (http_scheme='https'). When True, password is required.",
    )
    bindtype: BindTypeEnum | None = Field(
        default=None,
        description="Override the driver's placeholder syntax; defaults per product type.",
    )
