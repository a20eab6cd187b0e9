"""
Block tags for optional SQL clauses.

{% where %} ... {% endwhere %}
    Renders the block, strips a leading AND/OR, prefixes ``WHERE`` and
    renders nothing when the body is empty.

{% set_clause %} ... {% endset_clause %}
    Renders the block, strips leading/trailing commas, prefixes ``SET``.
    Lets UPDATE templates list assignments behind ``{% if %}`` guards.
"""

import re

from jinja2 import nodes
from jinja2.ext import Extension

from sqlt.engines.sql.filters import SqlSafe

_LEADING_BOOL = re.compile(r"^\s*(AND|OR)\s+", re.IGNORECASE)


def _block(parser, end_tag: str, method) -> nodes.CallBlock:
    token = next(parser.stream)
    body = parser.parse_statements((f"name:{end_tag}",), drop_needle=True)
    return nodes.CallBlock(method, [], [], body).set_lineno(token.lineno)


class WhereExtension(Extension):
    tags = {"where"}

    def parse(self, parser) -> nodes.CallBlock:
        return _block(parser, "endwhere", self.call_method("_render_where", [], [], []))

    def _render_where(self, caller) -> str:
        s = _LEADING_BOOL.sub("", caller().strip(), count=1).strip()
        if not s:
            return SqlSafe("")
        return SqlSafe("WHERE " + s)


class SetClauseExtension(Extension):
    tags = {"set_clause"}

    def parse(self, parser) -> nodes.CallBlock:
        return _block(parser, "endset_clause", self.call_method("_render_set", [], [], []))

    def _render_set(self, caller) -> str:
        s = caller().strip().strip(",").strip()
        if not s:
            return SqlSafe("")
        return SqlSafe("SET " + s)


SQL_EXTENSIONS: list[type[Extension]] = [WhereExtension, SetClauseExtension]
