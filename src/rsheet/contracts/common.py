"""Common Pydantic models: commands, replies, errors, metrics."""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, Field

CellValue = Union[None, bool, int, float, str]

ERR_COMMAND_FORMAT = "ERR_COMMAND_FORMAT"
ERR_CELL_NAME = "ERR_CELL_NAME"
ERR_EXPRESSION = "ERR_EXPRESSION"
ERR_INTERNAL = "ERR_INTERNAL"
ERR_USAGE = "ERR_USAGE"


class RsheetError(Exception):
    """Base class for every error raised by rsheet."""

    code: str = ERR_INTERNAL


class CommandParseError(RsheetError):
    """Raised when a line is not a well-formed command."""

    def __init__(self, message: str, code: str = ERR_COMMAND_FORMAT) -> None:
        super().__init__(message)
        self.code = code


class EvaluationError(RsheetError):
    """Raised when an expression cannot be evaluated."""

    code = ERR_EXPRESSION


class TransportError(RsheetError):
    """Raised when a connection can no longer be read from or written to."""

    code = "ERR_IO_TRANSPORT"


class ConnectionClosed(TransportError):
    """Raised when the peer closed the connection (end of input)."""


class ConfigError(RsheetError):
    """Raised when a configuration file cannot be loaded."""

    code = "ERR_IO_CONFIG"


class GetCommand(BaseModel):
    """``get <CELL>``"""

    kind: Literal["get"] = "get"
    cell: str


class SetCommand(BaseModel):
    """``set <CELL> <EXPR>``"""

    kind: Literal["set"] = "set"
    cell: str
    expression: str


Command = Union[GetCommand, SetCommand]


class ErrorDetail(BaseModel):
    """Structured error."""

    code: str
    message: str


class Metrics(BaseModel):
    """Execution metrics."""

    duration_ms: int = 0


class Reply(BaseModel):
    """The single response written back for one command."""

    ok: bool = True
    command: str = "unknown"
    cell: str | None = None
    value: CellValue = None
    kind: str = "none"  # none / int / float / text / bool
    errors: list[ErrorDetail] = Field(default_factory=list)
    metrics: Metrics = Field(default_factory=Metrics)


def value_kind(value: CellValue) -> str:
    """Return the kind label for a cell value."""
    if value is None:
        return "none"
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    return "text"


class ResponseEnvelope(BaseModel):
    """Envelope returned by the one-shot CLI commands (version, run, serve errors)."""

    ok: bool = True
    command: str = ""
    result: Any = None
    errors: list[ErrorDetail] = Field(default_factory=list)
    metrics: Metrics = Field(default_factory=Metrics)
