"""
Declared-name field mapping for inputs and destinations.

A field's declared name is what named markers (``:name``) and result columns
refer to. It comes from an explicit per-field declaration, never from field
order:

- pydantic / SQLModel: ``Field(json_schema_extra={"db": "col"})``, else the
  field alias, else ``name_func(field_name)``.
- dataclasses: ``field(metadata={"db": "col"})``, else ``name_func(name)``.
- other objects: ``name_func(attribute)`` over the instance ``__dict__``.

A declared name of ``"-"`` hides the field.

Field maps are built once per type and cached; building is the only place a
lock is taken.
"""

import dataclasses
import threading
from collections.abc import Callable, Mapping, MutableMapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, NamedTuple
from uuid import UUID

from pydantic import BaseModel, ValidationError

from sqlt.errors import ScanError

SKIP = "-"

SCALAR_TYPES: tuple[type, ...] = (
    bool,
    int,
    float,
    str,
    bytes,
    Decimal,
    datetime,
    date,
    time,
    UUID,
)


class FieldEntry(NamedTuple):
    declared: str  # name used by markers and result columns
    attr: str  # python attribute name
    init_key: str  # keyword the constructor / validator expects
    init: bool  # accepted by the constructor


def _is_model_type(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, BaseModel)


def _is_dataclass_type(tp: Any) -> bool:
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


class FieldMapper:
    """Resolves declared names for a type and moves values in and out of it."""

    def __init__(self, tag: str = "db", name_func: Callable[[str], str] = str.lower) -> None:
        self.tag = tag
        self.name_func = name_func
        self._cache: dict[type, dict[str, FieldEntry]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Field maps
    # ------------------------------------------------------------------

    def field_map(self, tp: type) -> dict[str, FieldEntry]:
        """Return ``{declared_name: FieldEntry}`` for a model or dataclass type."""
        fm = self._cache.get(tp)
        if fm is not None:
            return fm
        fm = self._build(tp)
        with self._lock:
            self._cache.setdefault(tp, fm)
        return fm

    def _build(self, tp: type) -> dict[str, FieldEntry]:
        out: dict[str, FieldEntry] = {}
        if _is_model_type(tp):
            for name, info in tp.model_fields.items():
                extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
                declared = extra.get(self.tag) or info.alias or self.name_func(name)
                if declared == SKIP:
                    continue
                out[str(declared)] = FieldEntry(str(declared), name, info.alias or name, True)
        elif _is_dataclass_type(tp):
            for f in dataclasses.fields(tp):
                declared = f.metadata.get(self.tag) or self.name_func(f.name)
                if declared == SKIP:
                    continue
                out[declared] = FieldEntry(declared, f.name, f.name, f.init)
        else:
            raise TypeError(f"{tp.__name__} has no declared fields")
        return out

    def _instance_map(self, obj: Any) -> dict[str, FieldEntry]:
        tp = type(obj)
        if _is_model_type(tp) or _is_dataclass_type(tp):
            return self.field_map(tp)
        attrs = getattr(obj, "__dict__", None) or {}
        return {
            self.name_func(a): FieldEntry(self.name_func(a), a, a, False)
            for a in attrs
            if not a.startswith("_")
        }

    # ------------------------------------------------------------------
    # Reading (binding and rendering)
    # ------------------------------------------------------------------

    def lookup(self, obj: Any, name: str) -> Any:
        """Value of the field declared as *name*; KeyError if there is none."""
        if obj is None:
            raise KeyError(name)
        if isinstance(obj, Mapping):
            return obj[name]
        entry = self._instance_map(obj).get(name)
        if entry is None:
            raise KeyError(name)
        return getattr(obj, entry.attr)

    def lookup_path(self, obj: Any, path: str) -> Any:
        """Resolve a dotted path such as ``author.id`` one step at a time."""
        value = obj
        for part in path.split("."):
            value = self.lookup(value, part)
        return value

    @staticmethod
    def template_fields(obj: Any) -> dict[str, Any]:
        """Top-level fields by python attribute name (or mapping key)."""
        if obj is None:
            return {}
        if isinstance(obj, Mapping):
            return {k: v for k, v in obj.items() if isinstance(k, str)}
        if isinstance(obj, BaseModel):
            return {name: getattr(obj, name) for name in type(obj).model_fields}
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
        attrs = getattr(obj, "__dict__", None) or {}
        return {k: v for k, v in attrs.items() if not k.startswith("_")}

    # ------------------------------------------------------------------
    # Writing (materialization)
    # ------------------------------------------------------------------

    def scan(
        self,
        dest: Any,
        columns: Sequence[str],
        row: Sequence[Any],
        *,
        strict: bool = True,
    ) -> Any:
        """Map one result row onto *dest*.

        *dest* may be a type (a new value is returned) or an instance (updated
        in place and returned). Columns are matched by declared name.
        """
        if len(columns) != len(row):
            raise ScanError(f"row has {len(row)} values for {len(columns)} columns")
        if dest is dict:
            return dict(zip(columns, row))
        if isinstance(dest, MutableMapping):
            dest.update(zip(columns, row))
            return dest
        if isinstance(dest, type) and dest in SCALAR_TYPES:
            return self._scan_scalar(dest, columns, row)
        if isinstance(dest, type):
            if not (_is_model_type(dest) or _is_dataclass_type(dest)):
                raise ScanError(f"unsupported destination type {dest.__name__}")
            return self._construct(dest, self._match(dest, columns, row, strict))
        return self._assign(dest, columns, row, strict)

    def _match(
        self, tp: type, columns: Sequence[str], row: Sequence[Any], strict: bool
    ) -> dict[FieldEntry, Any]:
        fm = self.field_map(tp)
        matched: dict[FieldEntry, Any] = {}
        for col, value in zip(columns, row):
            entry = fm.get(col)
            if entry is None:
                if strict:
                    raise ScanError(f"missing destination name {col!r} in {tp.__name__}")
                continue
            matched[entry] = value
        return matched

    @staticmethod
    def _scan_scalar(tp: type, columns: Sequence[str], row: Sequence[Any]) -> Any:
        if len(columns) != 1:
            raise ScanError(f"scalar destination {tp.__name__} needs exactly 1 column, got {len(columns)}")
        value = row[0]
        if value is None or isinstance(value, tp):
            return value
        try:
            return tp(value)
        except (TypeError, ValueError) as e:
            raise ScanError(f"cannot convert {value!r} to {tp.__name__}: {e}") from e

    def _construct(self, tp: type, matched: dict[FieldEntry, Any]) -> Any:
        if _is_model_type(tp):
            try:
                return tp.model_validate({e.init_key: v for e, v in matched.items()})
            except ValidationError as e:
                raise ScanError(f"cannot scan into {tp.__name__}: {e}") from e
        try:
            obj = tp(**{e.init_key: v for e, v in matched.items() if e.init})
        except TypeError as e:
            raise ScanError(f"cannot scan into {tp.__name__}: {e}") from e
        for e, v in matched.items():
            if not e.init:
                setattr(obj, e.attr, v)
        return obj

    def _assign(self, obj: Any, columns: Sequence[str], row: Sequence[Any], strict: bool) -> Any:
        tp = type(obj)
        if _is_model_type(tp):
            matched = self._match(tp, columns, row, strict)
            current = {e.init_key: getattr(obj, e.attr) for e in self.field_map(tp).values()}
            current.update({e.init_key: v for e, v in matched.items()})
            try:
                validated = tp.model_validate(current)
            except ValidationError as e:
                raise ScanError(f"cannot scan into {tp.__name__}: {e}") from e
            for e in matched:
                setattr(obj, e.attr, getattr(validated, e.attr))
            return obj
        if _is_dataclass_type(tp):
            matched = self._match(tp, columns, row, strict)
        else:
            fm = self._instance_map(obj)
            matched = {}
            for col, value in zip(columns, row):
                entry = fm.get(col)
                if entry is None:
                    if strict:
                        raise ScanError(f"missing destination name {col!r} in {tp.__name__}")
                    continue
                matched[entry] = value
        for e, v in matched.items():
            setattr(obj, e.attr, v)
        return obj


default_mapper = FieldMapper()
