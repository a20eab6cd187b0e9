"""
SQL template pipeline: registry, renderer (Jinja2), named-parameter binder,
IN-list expander and placeholder rebinder.

The executor (``sqlt.engines.sql.executor``) ties them to a database.
"""

from sqlt.engines.sql.binder import Bound, bind_named, find_markers
from sqlt.engines.sql.expander import Array, expand_in
from sqlt.engines.sql.rebind import rebind
from sqlt.engines.sql.registry import (
    FileSystemSource,
    MappingSource,
    PackageSource,
    TemplateRegistry,
    TemplateSource,
)
from sqlt.engines.sql.template_engine import SQLTemplateEngine

__all__ = [
    "Array",
    "Bound",
    "FileSystemSource",
    "MappingSource",
    "PackageSource",
    "SQLTemplateEngine",
    "TemplateRegistry",
    "TemplateSource",
    "bind_named",
    "expand_in",
    "find_markers",
    "rebind",
]
