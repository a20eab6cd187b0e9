"""
SQL template renderer (Jinja2).

Renders a registered template against an input value and returns raw SQL
that may still contain ``:name`` markers. The renderer does not look at the
output beyond Jinja2's own rules; binding happens afterwards.

Render context: the input's top-level fields by attribute name (or mapping
key), plus the input itself as ``data``. Undefined names raise: templates
test optional fields with ``{% if x is defined %}``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from jinja2 import Environment, StrictUndefined, TemplateError, UndefinedError

from sqlt.core.mapper import FieldMapper
from sqlt.engines.sql.extensions import SQL_EXTENSIONS
from sqlt.engines.sql.filters import DIALECT_KEY, SQL_FILTERS, sql_finalize
from sqlt.errors import RenderError

if TYPE_CHECKING:
    from sqlt.engines.sql.registry import TemplateRegistry


def make_environment() -> Environment:
    """A fresh Jinja2 Environment with SQL filters, block tags and auto-escape."""
    env = Environment(
        autoescape=False,
        undefined=StrictUndefined,
        extensions=SQL_EXTENSIONS,
        finalize=sql_finalize,
        keep_trailing_newline=False,
        cache_size=-1,
    )
    env.filters.update(SQL_FILTERS)
    return env


def render_context(data: Any) -> dict[str, Any]:
    ctx = FieldMapper.template_fields(data)
    ctx.setdefault("data", data)
    return ctx


class SQLTemplateEngine:
    """Renders named templates from a registry.

    *dialect* (anything with ``backslash_escapes`` and ``identifier_quote``)
    decides how ``{{ }}`` values and identifiers are quoted.
    """

    def __init__(self, registry: TemplateRegistry, dialect: Any = None) -> None:
        self.registry = registry
        self.dialect = dialect

    def render(self, name: str, data: Any = None) -> str:
        """Render template *name* with *data*; TemplateNotFound / RenderError on failure."""
        template = self.registry.resolve(name)
        ctx = render_context(data)
        ctx[DIALECT_KEY] = self.dialect
        try:
            return template.render(ctx)
        except UndefinedError as e:
            fields = sorted(k for k in ctx if k != DIALECT_KEY)
            raise RenderError(
                f"template variable not found: {e}. Available fields: {fields}",
                template=name,
            ) from e
        except TemplateError as e:
            raise RenderError(f"template render error: {e}", template=name) from e
        except (TypeError, ValueError, AttributeError, LookupError, ArithmeticError) as e:
            raise RenderError(f"template execution failed: {e}", template=name) from e
