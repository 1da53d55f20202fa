"""Structured results for tool invocations.

Tools build a :class:`ToolResult` internally and render it to plain text at
the boundary, so callers only ever see a string: the success payload, or a
fixed ``"Error <operation>: <message>"`` line.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

# pyodbc raises driver errors as (sqlstate, "[state] [vendor][driver][server]text (native) (call)").
_SQLSTATE = re.compile(r"[0-9A-Z]{5}")
_DRIVER_PREFIX = re.compile(r"^(\s*\[[^\]]*\])+\s*")
_DRIVER_SUFFIX = re.compile(r"(\s*\(-?\d+\))?\s*\(SQL\w+\)\s*$")


class EntraToolsError(RuntimeError):
    """Base class for errors raised inside the tool groups."""


class InvalidColumnMapError(EntraToolsError, ValueError):
    """Raised when the column-value payload is not a JSON object."""


class SQLConfigurationError(EntraToolsError):
    """Raised when the database connection cannot be configured."""


@dataclass(frozen=True)
class ToolError:
    """Failure captured at a tool boundary."""

    operation: str
    message: str
    error_type: str = "Exception"

    @classmethod
    def from_exception(cls, operation: str, exc: BaseException) -> "ToolError":
        return cls(operation=operation, message=_exception_message(exc), error_type=type(exc).__name__)

    def render(self) -> str:
        return f"Error {self.operation}: {self.message}"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool call: a text payload or a :class:`ToolError`."""

    payload: Optional[str] = None
    error: Optional[ToolError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, payload: str) -> "ToolResult":
        return cls(payload=payload)

    @classmethod
    def failure(cls, operation: str, exc: BaseException) -> "ToolResult":
        return cls(error=ToolError.from_exception(operation, exc))

    def render(self) -> str:
        """Render the externally observed string."""

        if self.error is not None:
            return self.error.render()
        return self.payload or ""


class LookupStatus(enum.Enum):
    """Result of a direct-by-key directory lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class LookupOutcome(Generic[T]):
    """Explicit found/not-found result; transport errors are raised instead."""

    status: LookupStatus
    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def found(cls, value: T) -> "LookupOutcome[T]":
        return cls(status=LookupStatus.FOUND, value=value)

    @classmethod
    def not_found(cls, reason: str | None = None) -> "LookupOutcome[Any]":
        return cls(status=LookupStatus.NOT_FOUND, reason=reason)

    @property
    def is_found(self) -> bool:
        return self.status is LookupStatus.FOUND


def _driver_message(exc: BaseException) -> str | None:
    """Message text of an ODBC driver error raised as ``(sqlstate, message)``."""

    args = exc.args
    if len(args) < 2 or not isinstance(args[0], str) or not isinstance(args[1], str):
        return None
    if not _SQLSTATE.fullmatch(args[0]):
        return None
    message = _DRIVER_PREFIX.sub("", args[1])
    message = _DRIVER_SUFFIX.sub("", message)
    return message.strip() or args[1]


def _exception_message(exc: BaseException) -> str:
    driver_message = _driver_message(exc)
    if driver_message:
        return driver_message
    message = str(exc)
    if not message and exc.args:
        message = repr(exc.args[0])
    return message or type(exc).__name__


__all__ = [
    "EntraToolsError",
    "InvalidColumnMapError",
    "LookupOutcome",
    "LookupStatus",
    "SQLConfigurationError",
    "ToolError",
    "ToolResult",
]
