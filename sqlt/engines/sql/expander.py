"""
IN-list expansion.

A positional marker whose value is a sequence becomes one marker per element
(``?, ?, ?``) and the elements are spliced into the parameter list at the same
position. Empty sequences raise ExpansionError: ``IN ()`` is not valid SQL and
silently turning it into an always-false clause hides caller bugs.
"""

from collections.abc import Iterable
from typing import Any

from sqlt.engines.sql.binder import MARKER, Bound
from sqlt.engines.sql.scanner import segments
from sqlt.errors import ExpansionError

_SEPARATOR = ", "


class Array:
    """Wraps a sequence that must reach the driver as one array parameter.

    ``WHERE id = ANY(:ids)`` with ``{"ids": Array([1, 2])}`` binds a single
    list instead of expanding it.
    """

    __slots__ = ("value",)

    def __init__(self, value: Iterable[Any]) -> None:
        self.value = list(value)

    def __repr__(self) -> str:
        return f"Array({self.value!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Array) and other.value == self.value

    __hash__ = None


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset, range))


def _flatten(value: Any) -> list[Any]:
    if isinstance(value, (set, frozenset)):
        try:
            return sorted(value)
        except TypeError:
            return list(value)
    return list(value)


def expand_in(sql: str, params: list[Any], *, backslash_escapes: bool = False) -> Bound:
    """Expand sequence-valued parameters of a positional statement."""
    if not any(is_sequence(p) or isinstance(p, Array) for p in params):
        return Bound(sql, list(params))

    out: list[str] = []
    flat: list[Any] = []
    index = 0

    for seg in segments(sql, backslash_escapes):
        if not seg.code:
            out.append(seg.text)
            continue
        pieces = seg.text.split(MARKER)
        out.append(pieces[0])
        for piece in pieces[1:]:
            if index >= len(params):
                raise ExpansionError(
                    f"statement has more {MARKER} markers than the {len(params)} parameters"
                )
            value = params[index]
            if isinstance(value, Array):
                out.append(MARKER)
                flat.append(value.value)
            elif is_sequence(value):
                items = _flatten(value)
                if not items:
                    raise ExpansionError(f"empty sequence passed for parameter {index + 1}")
                out.append(_SEPARATOR.join([MARKER] * len(items)))
                flat.extend(items)
            else:
                out.append(MARKER)
                flat.append(value)
            out.append(piece)
            index += 1

    if index != len(params):
        raise ExpansionError(f"statement has {index} {MARKER} markers but {len(params)} parameters")
    return Bound("".join(out), flat)
