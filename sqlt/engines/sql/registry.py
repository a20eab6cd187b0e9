"""
Template registry: the parsed set of named SQL templates.

Templates are loaded from a source by glob patterns and compiled eagerly in
the constructor; any failure aborts construction. After that the registry is
read-only and ``resolve`` is safe for concurrent callers without locking.

Naming: a file ``user/create.sql`` is registered as ``user/create``. A file
containing ``-- name: <template/name>`` header lines instead registers one
template per block under the declared names.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from collections.abc import Iterable, Mapping
from importlib import resources
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Protocol

from jinja2 import DictLoader, Environment, Template, TemplateError, TemplateSyntaxError

from sqlt.engines.sql.template_engine import make_environment
from sqlt.errors import TemplateNotFound, TemplateParseError

_log = logging.getLogger(__name__)

# -- name: user/create
NAME_HEADER = re.compile(r"^[ \t]*--[ \t]*name[ \t]*:[ \t]*(?P<name>[\w./-]+)[ \t]*$", re.MULTILINE)


# ---------------------------------------------------------------------------
# Template sources
# ---------------------------------------------------------------------------


class TemplateSource(Protocol):
    def load(self, patterns: Iterable[str]) -> dict[str, str]:
        """Return ``{template_name: raw_text}`` for every match of *patterns*."""
        ...


def _match(name: str, pattern: str) -> bool:
    if fnmatch.fnmatchcase(name, pattern):
        return True
    # "**/" also matches zero directories, as with Path.glob
    return pattern.startswith("**/") and _match(name, pattern[3:])


def _stem_name(rel: PurePosixPath) -> str:
    return str(rel.with_suffix("")) if rel.suffix else str(rel)


def split_named_blocks(text: str) -> dict[str, str] | None:
    """Split aiosql-style ``-- name:`` blocks; None when the text has no headers."""
    headers = list(NAME_HEADER.finditer(text))
    if not headers:
        return None
    blocks: dict[str, str] = {}
    for i, m in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(text)
        name = m.group("name")
        if name in blocks:
            raise TemplateParseError(f"duplicate template name {name!r} in one file")
        blocks[name] = text[m.end() : end].strip("\n")
    return blocks


def _collect(files: Iterable[tuple[PurePosixPath, str]]) -> dict[str, str]:
    out: dict[str, str] = {}
    for rel, text in files:
        blocks = split_named_blocks(text)
        if blocks is None:
            blocks = {_stem_name(rel): text}
        for name, body in blocks.items():
            if name in out:
                raise TemplateParseError(f"duplicate template name {name!r} (from {rel})")
            out[name] = body
    return out


class FileSystemSource:
    """Templates from files under *root*, matched with ``Path.glob`` patterns."""

    def __init__(self, root: str | Path, encoding: str = "utf-8") -> None:
        self.root = Path(root)
        self.encoding = encoding

    def load(self, patterns: Iterable[str]) -> dict[str, str]:
        if not self.root.is_dir():
            raise TemplateParseError(f"template directory not found: {self.root}")
        files: dict[PurePosixPath, str] = {}
        for pattern in patterns:
            matched = [p for p in sorted(self.root.glob(pattern)) if p.is_file()]
            if not matched:
                raise TemplateParseError(f"pattern matches no files: {pattern!r} in {self.root}")
            for path in matched:
                rel = PurePosixPath(path.relative_to(self.root).as_posix())
                if rel not in files:
                    try:
                        files[rel] = path.read_text(encoding=self.encoding)
                    except OSError as e:
                        raise TemplateParseError(f"cannot read {path}: {e}") from e
        return _collect(files.items())


class PackageSource:
    """Templates shipped as package data (``importlib.resources``)."""

    def __init__(self, package: str, root: str = "sql") -> None:
        self.package = package
        self.root = root

    def _walk(self, node, prefix: PurePosixPath):
        for child in node.iterdir():
            rel = prefix / child.name
            if child.is_dir():
                yield from self._walk(child, rel)
            elif child.is_file():
                yield rel, child

    def load(self, patterns: Iterable[str]) -> dict[str, str]:
        base = resources.files(self.package).joinpath(self.root)
        if not base.is_dir():
            raise TemplateParseError(f"package {self.package!r} has no {self.root!r} directory")
        entries = sorted(self._walk(base, PurePosixPath()), key=lambda x: str(x[0]))
        files: dict[PurePosixPath, str] = {}
        for pattern in patterns:
            matched = [(rel, node) for rel, node in entries if _match(str(rel), pattern)]
            if not matched:
                raise TemplateParseError(f"pattern matches no files: {pattern!r} in {self.package}")
            for rel, node in matched:
                files.setdefault(rel, node.read_text(encoding="utf-8"))
        return _collect(files.items())


class MappingSource:
    """In-memory templates; patterns match names with ``fnmatch``."""

    def __init__(self, templates: Mapping[str, str]) -> None:
        self.templates = dict(templates)

    def load(self, patterns: Iterable[str]) -> dict[str, str]:
        out: dict[str, str] = {}
        for pattern in patterns:
            names = [n for n in self.templates if fnmatch.fnmatchcase(n, pattern)]
            if not names:
                raise TemplateParseError(f"pattern matches no templates: {pattern!r}")
            for n in names:
                out[n] = self.templates[n]
        return out


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TemplateRegistry:
    """Named, compiled, immutable SQL templates."""

    def __init__(
        self,
        source: TemplateSource,
        patterns: Iterable[str] = ("**/*.sql",),
        *,
        environment: Environment | None = None,
    ) -> None:
        sources = source.load(list(patterns))
        env = environment or make_environment()
        env.loader = DictLoader(sources)

        compiled: dict[str, Template] = {}
        for name in sorted(sources):
            try:
                compiled[name] = env.get_template(name)
            except TemplateSyntaxError as e:
                raise TemplateParseError(
                    f"syntax error at line {e.lineno}: {e.message}", template=name
                ) from e
            except TemplateError as e:
                raise TemplateParseError(str(e), template=name) from e

        self.environment = env
        self._sources = MappingProxyType(dict(sources))
        self._templates = MappingProxyType(compiled)
        _log.debug("Loaded %d SQL templates: %s", len(compiled), ", ".join(compiled))

    @classmethod
    def from_directory(
        cls, root: str | Path, patterns: Iterable[str] = ("**/*.sql",)
    ) -> TemplateRegistry:
        return cls(FileSystemSource(root), patterns)

    @classmethod
    def from_package(
        cls, package: str, root: str = "sql", patterns: Iterable[str] = ("**/*.sql",)
    ) -> TemplateRegistry:
        return cls(PackageSource(package, root), patterns)

    @classmethod
    def from_mapping(cls, templates: Mapping[str, str]) -> TemplateRegistry:
        return cls(MappingSource(templates), ("*",))

    def resolve(self, name: str) -> Template:
        try:
            return self._templates[name]
        except KeyError:
            raise TemplateNotFound(f"no template named {name!r}", template=name) from None

    def source(self, name: str) -> str:
        try:
            return self._sources[name]
        except KeyError:
            raise TemplateNotFound(f"no template named {name!r}", template=name) from None

    def names(self) -> list[str]:
        return sorted(self._templates)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)
