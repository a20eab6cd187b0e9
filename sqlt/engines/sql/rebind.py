"""
Placeholder rewriting per driver.

Turns the neutral ``?`` marker into the driver's native syntax. Only code is
rewritten; for FORMAT style every literal ``%`` is doubled because the
driver interpolates the whole text.
"""

from collections.abc import Callable

from sqlt.engines.sql.binder import MARKER
from sqlt.engines.sql.scanner import segments
from sqlt.errors import RebindError
from sqlt.models import BindTypeEnum

_PLACEHOLDERS: dict[BindTypeEnum, Callable[[int], str]] = {
    BindTypeEnum.QUESTION: lambda n: "?",
    BindTypeEnum.DOLLAR: lambda n: f"${n}",
    BindTypeEnum.NAMED: lambda n: f":arg{n}",
    BindTypeEnum.AT: lambda n: f"@p{n}",
    BindTypeEnum.FORMAT: lambda n: "%s",
}


def rebind(
    sql: str,
    bindtype: BindTypeEnum | str,
    param_count: int | None = None,
    *,
    backslash_escapes: bool = False,
) -> str:
    """Rewrite ``?`` markers in *sql* for *bindtype*.

    When *param_count* is given the marker count must match it exactly,
    otherwise RebindError: a mismatch would bind values to the wrong columns.
    """
    try:
        bt = BindTypeEnum(bindtype)
    except ValueError:
        raise RebindError(f"unknown bind type {bindtype!r}") from None
    placeholder = _PLACEHOLDERS[bt]
    escape_percent = bt == BindTypeEnum.FORMAT

    out: list[str] = []
    n = 0
    for seg in segments(sql, backslash_escapes):
        text = seg.text.replace("%", "%%") if escape_percent else seg.text
        if not seg.code:
            out.append(text)
            continue
        pieces = text.split(MARKER)
        out.append(pieces[0])
        for piece in pieces[1:]:
            n += 1
            out.append(placeholder(n))
            out.append(piece)

    if param_count is not None and n != param_count:
        raise RebindError(f"statement has {n} placeholders but {param_count} parameters")
    return "".join(out)
