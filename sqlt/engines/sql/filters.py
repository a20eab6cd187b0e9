"""
Jinja2 filters for SQL templates.

Values interpolated with ``{{ }}`` end up in the SQL text itself, so they are
escaped into SQL literals. Prefer named markers (``:name``) for values; use
``{{ }}`` for structure (identifiers, trusted fragments, ORDER BY direction).

All filters return ``SqlSafe`` so the ``finalize`` callback knows the value
was already handled and does not escape it twice.

Quoting follows the dialect the template is rendered for, found in the
render context under ``DIALECT_KEY``: MySQL doubles backslashes in string
literals and quotes identifiers with backticks.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from jinja2 import pass_context
from jinja2.runtime import Context

# Render-context key holding the target dialect (or None for standard SQL)
DIALECT_KEY = "_sql_dialect"

_QUOTE_ESCAPE = str.maketrans({"'": "''"})
_QUOTE_AND_BACKSLASH_ESCAPE = str.maketrans({"'": "''", "\\": "\\\\"})


class SqlSafe(str):
    """String already rendered as SQL; ``finalize`` passes it through."""


def _dialect_attr(context: Context, name: str, default: Any) -> Any:
    return getattr(context.get(DIALECT_KEY), name, default)


def quote_literal(value: Any, backslash_escapes: bool = False) -> SqlSafe:
    """Quoted string literal. None -> NULL."""
    if value is None:
        return SqlSafe("NULL")
    table = _QUOTE_AND_BACKSLASH_ESCAPE if backslash_escapes else _QUOTE_ESCAPE
    return SqlSafe("'" + str(value).translate(table) + "'")


def quote_identifier(value: Any, quote: str = '"') -> SqlSafe:
    """Quote an identifier, doubling embedded quotes.

    Dotted names are quoted per part: ``public.users`` -> ``"public"."users"``.
    """
    if value is None or str(value) == "":
        raise ValueError("empty SQL identifier")
    parts = str(value).split(".")
    return SqlSafe(".".join(quote + p.replace(quote, quote * 2) + quote for p in parts))


@pass_context
def sql_string(context: Context, value: Any) -> SqlSafe:
    return quote_literal(value, _dialect_attr(context, "backslash_escapes", False))


def sql_int(value: Any) -> SqlSafe:
    """Integer literal; anything that is not an integer renders NULL."""
    if value is None or isinstance(value, bool):
        return SqlSafe("NULL")
    try:
        return SqlSafe(str(int(value)))
    except (TypeError, ValueError):
        return SqlSafe("NULL")


def sql_float(value: Any) -> SqlSafe:
    if value is None or isinstance(value, bool):
        return SqlSafe("NULL")
    try:
        return SqlSafe(repr(float(value)))
    except (TypeError, ValueError):
        return SqlSafe("NULL")


def sql_bool(value: Any) -> SqlSafe:
    if value is None:
        return SqlSafe("NULL")
    return SqlSafe("TRUE" if value else "FALSE")


@pass_context
def sql_ident(context: Context, value: Any, quote: str | None = None) -> SqlSafe:
    """Identifier quoted for the dialect; pass *quote* to override."""
    if quote is None:
        quote = _dialect_attr(context, "identifier_quote", '"')
    return quote_identifier(value, quote)


def sql_raw(value: Any) -> SqlSafe:
    """Trusted SQL fragment, emitted as-is.

    Named markers inside the fragment are still bound afterwards, so a caller
    supplied ``where`` such as ``"age > :age"`` stays parameterized. Never use
    on untrusted input.
    """
    if value is None:
        return SqlSafe("")
    return SqlSafe(str(value))


@pass_context
def sql_finalize(context: Context, value: Any) -> str:
    """Jinja2 ``finalize`` callback applied to every ``{{ }}`` output.

    * ``SqlSafe`` -> unchanged.
    * ``None`` -> ``NULL``; ``bool`` -> ``TRUE`` / ``FALSE``.
    * ``int`` / ``float`` / ``Decimal`` -> numeric literal.
    * ``date`` / ``datetime`` -> quoted ISO text.
    * everything else -> quoted string literal.
    """
    if isinstance(value, SqlSafe):
        return str(value)
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    backslash_escapes = _dialect_attr(context, "backslash_escapes", False)
    if isinstance(value, (datetime, date)):
        return quote_literal(value.isoformat(), backslash_escapes)
    return quote_literal(value, backslash_escapes)


SQL_FILTERS: dict[str, Any] = {
    "sql_string": sql_string,
    "sql_int": sql_int,
    "sql_float": sql_float,
    "sql_bool": sql_bool,
    "sql_ident": sql_ident,
    "sql_raw": sql_raw,
    "safe": sql_raw,
}
