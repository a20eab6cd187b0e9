"""
Debug trace of executed and failed statements.

When enabled, the final SQL and its positional parameters are logged on the
``sqlt.trace`` logger so an operator can replay the statement by hand.
Tracing never raises into the caller.
"""

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

_trace_log = logging.getLogger("sqlt.trace")


def format_param(value: Any) -> str:
    """Numbers verbatim, None as NULL, everything else quoted."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def format_statement(sql: str, params: Sequence[Any]) -> str:
    return f"{sql} [{', '.join(format_param(p) for p in params)}]"


def trace_statement(
    sql: str,
    params: Sequence[Any],
    *,
    template: str | None = None,
    error: BaseException | None = None,
) -> None:
    try:
        if error is None:
            _trace_log.info("%s: %s", template or "<sql>", format_statement(sql, params))
        else:
            _trace_log.info(
                "%s failed (%s): %s", template or "<sql>", error, format_statement(sql, params)
            )
    except Exception:
        _trace_log.debug("could not format statement for trace", exc_info=True)
