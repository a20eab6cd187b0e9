"""
Error taxonomy for the template -> query -> result pipeline.

Every stage raises its own kind, chained to the lower-level cause, so callers
can tell "the template is wrong" from "the database rejected this" from
"no such record". The public operation that failed is stamped onto the error
as ``operation`` before it leaves the engine.
"""

from __future__ import annotations


class SQLTError(Exception):
    """Base class for all sqlt errors."""

    def __init__(
        self,
        message: str,
        *,
        template: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.template = template
        self.operation = operation

    def __str__(self) -> str:
        prefix = " ".join(p for p in (self.operation, self.template) if p)
        if prefix:
            return f"{prefix}: {self.message}"
        return self.message


class TemplateNotFound(SQLTError):
    """No template is registered under the requested name."""


class TemplateParseError(SQLTError):
    """A template source could not be loaded or compiled."""


class RenderError(SQLTError):
    """Template execution failed (undefined field, runtime error in a tag)."""


class BindError(SQLTError):
    """A named marker could not be resolved against the input."""


class ExpansionError(SQLTError):
    """A sequence parameter could not be expanded (e.g. empty sequence)."""


class RebindError(SQLTError):
    """Placeholders could not be rewritten for the target dialect."""


class ExecutionError(SQLTError):
    """The database rejected the statement or the call was aborted."""


class DeadlineExceeded(ExecutionError):
    """The call's deadline passed before or during execution."""


class Canceled(ExecutionError):
    """The call's context was canceled."""


class NotFoundError(SQLTError):
    """A single-row query returned zero rows."""


class MultipleRowsError(SQLTError):
    """A single-row query returned more than one row."""


class ScanError(SQLTError):
    """A result row could not be mapped onto the destination."""


__all__ = [
    "SQLTError",
    "TemplateNotFound",
    "TemplateParseError",
    "RenderError",
    "BindError",
    "ExpansionError",
    "RebindError",
    "ExecutionError",
    "DeadlineExceeded",
    "Canceled",
    "NotFoundError",
    "MultipleRowsError",
    "ScanError",
]
