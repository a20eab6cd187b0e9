"""
Quote-aware SQL scanner.

Splits SQL into code runs and non-code runs (string literals, quoted
identifiers, comments, dollar-quoted bodies) so that marker detection,
IN-list expansion and placeholder rewriting only ever touch code.
Joining the texts of all segments gives back the input unchanged.

Standard SQL only escapes a quote by doubling it; ``'C:\\'`` is a complete
literal. MySQL also treats backslash as an escape inside quoted strings, so
callers pass ``backslash_escapes=True`` for that dialect.
"""

import re
from typing import NamedTuple

_DOLLAR_TAG = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)?\$")


class Segment(NamedTuple):
    text: str
    code: bool


def _quoted_end(sql: str, i: int, quote: str, backslash_escapes: bool) -> int:
    """Index just past the literal opened at *i*."""
    length = len(sql)
    j = i + 1
    while j < length:
        c = sql[j]
        if c == quote:
            if j + 1 < length and sql[j + 1] == quote:
                j += 2
                continue
            return j + 1
        if backslash_escapes and c == "\\" and quote != "`" and j + 1 < length:
            j += 2
            continue
        j += 1
    return length


def _find_end(sql: str, i: int, backslash_escapes: bool) -> int | None:
    """If a non-code run starts at *i*, return the index just past it."""
    ch = sql[i]
    nxt = sql[i + 1] if i + 1 < len(sql) else ""

    if ch in ("'", '"', "`"):
        return _quoted_end(sql, i, ch, backslash_escapes)

    if ch == "-" and nxt == "-":
        end = sql.find("\n", i)
        return len(sql) if end == -1 else end + 1

    if ch == "/" and nxt == "*":
        end = sql.find("*/", i + 2)
        return len(sql) if end == -1 else end + 2

    if ch == "$":
        # $1 style placeholders are code; only $$ or $tag$ open a body
        if i > 0 and (sql[i - 1].isalnum() or sql[i - 1] == "_"):
            return None
        m = _DOLLAR_TAG.match(sql, i)
        if m is None:
            return None
        tag = m.group(0)
        end = sql.find(tag, m.end())
        return len(sql) if end == -1 else end + len(tag)

    return None


def segments(sql: str, backslash_escapes: bool = False) -> list[Segment]:
    """Split *sql* into alternating code / non-code segments."""
    out: list[Segment] = []
    start = 0
    i = 0
    length = len(sql)

    while i < length:
        end = _find_end(sql, i, backslash_escapes)
        if end is None:
            i += 1
            continue
        if i > start:
            out.append(Segment(sql[start:i], True))
        out.append(Segment(sql[i:end], False))
        start = i = end

    if start < length:
        out.append(Segment(sql[start:], True))
    return out
