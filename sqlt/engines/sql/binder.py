"""
Named-parameter binding.

Replaces every ``:name`` marker in code (not inside literals or comments)
with the neutral positional marker ``?`` and collects the resolved values in
scan order. ``::`` is a PostgreSQL cast and is left alone.
"""

import re
from typing import Any, NamedTuple

from sqlt.core.mapper import FieldMapper, default_mapper
from sqlt.engines.sql.scanner import segments
from sqlt.errors import BindError

MARKER = "?"

# :name or :name.nested.path, not preceded by another ':'
_NAMED = re.compile(r"(?<![:\w]):(?P<name>[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*)")
_CAST = re.compile(r"::+")


class Bound(NamedTuple):
    sql: str
    params: list[Any]


def find_markers(sql: str, *, backslash_escapes: bool = False) -> list[str]:
    """Marker names in scan order (duplicates kept)."""
    names: list[str] = []
    for seg in segments(sql, backslash_escapes):
        if seg.code:
            names.extend(m.group("name") for m in _NAMED.finditer(_mask_casts(seg.text)))
    return names


def _mask_casts(text: str) -> str:
    # Same length, so match offsets stay valid
    return _CAST.sub(lambda m: "\0" * len(m.group(0)), text)


def bind_named(
    sql: str,
    data: Any,
    *,
    mapper: FieldMapper | None = None,
    backslash_escapes: bool = False,
) -> Bound:
    """Resolve ``:name`` markers in *sql* against *data*.

    Raises BindError if a marker cannot be resolved or if markers are present
    and *data* is None. Nothing is returned on failure.
    """
    mapper = mapper or default_mapper
    out: list[str] = []
    params: list[Any] = []

    for seg in segments(sql, backslash_escapes):
        if not seg.code:
            out.append(seg.text)
            continue
        masked = _mask_casts(seg.text)
        pos = 0
        for m in _NAMED.finditer(masked):
            name = m.group("name")
            if data is None:
                raise BindError(f"named parameter :{name} found but input is None")
            try:
                value = mapper.lookup_path(data, name)
            except (KeyError, TypeError, AttributeError) as e:
                raise BindError(
                    f"could not find name {name!r} in {type(data).__name__}"
                ) from e
            out.append(seg.text[pos : m.start()])
            out.append(MARKER)
            params.append(value)
            pos = m.end()
        out.append(seg.text[pos:])

    return Bound("".join(out), params)
