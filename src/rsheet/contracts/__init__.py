"""Pydantic models and error types shared across rsheet."""

from rsheet.contracts.common import (
    CellValue,
    Command,
    CommandParseError,
    ConfigError,
    ConnectionClosed,
    ErrorDetail,
    EvaluationError,
    GetCommand,
    Metrics,
    Reply,
    ResponseEnvelope,
    RsheetError,
    SetCommand,
    TransportError,
    value_kind,
)

__all__ = [
    "CellValue",
    "Command",
    "CommandParseError",
    "ConfigError",
    "ConnectionClosed",
    "ErrorDetail",
    "EvaluationError",
    "GetCommand",
    "Metrics",
    "Reply",
    "ResponseEnvelope",
    "RsheetError",
    "SetCommand",
    "TransportError",
    "value_kind",
]
