"""Command dispatch and reply helpers."""

from __future__ import annotations

import sys
from typing import Any, Callable, Mapping, TextIO, Union

import orjson

from rsheet.contracts.common import (
    ERR_CELL_NAME,
    ERR_COMMAND_FORMAT,
    ERR_EXPRESSION,
    ERR_INTERNAL,
    ERR_USAGE,
    CellValue,
    CommandParseError,
    ErrorDetail,
    EvaluationError,
    GetCommand,
    Metrics,
    Reply,
    ResponseEnvelope,
    SetCommand,
    value_kind,
)
from rsheet.engine.evaluator import evaluate
from rsheet.engine.parser import parse_command
from rsheet.engine.resolver import resolve_variables
from rsheet.engine.store import CellStore
from rsheet.observe.events import Timer

Evaluator = Callable[[str, Mapping[str, CellValue]], CellValue]

EXPRESSION_ERROR_PREFIX = "Expression error: "
NO_VALUE = "no value"

# Exit code mapping
EXIT_CODES = {
    "success": 0,
    "command": 10,
    "expression": 30,
    "io": 50,
    "internal": 90,
}

REPLY_FORMATS = ("json", "text")


def value_reply(
    command: str,
    cell: str,
    value: CellValue,
    *,
    duration_ms: int = 0,
) -> Reply:
    return Reply(
        ok=True,
        command=command,
        cell=cell,
        value=value,
        kind=value_kind(value),
        metrics=Metrics(duration_ms=duration_ms),
    )


def error_reply(
    command: str,
    code: str,
    message: str,
    *,
    cell: str | None = None,
    duration_ms: int = 0,
) -> Reply:
    return Reply(
        ok=False,
        command=command,
        cell=cell,
        errors=[ErrorDetail(code=code, message=message)],
        metrics=Metrics(duration_ms=duration_ms),
    )


def success_envelope(command: str, result: Any, *, duration_ms: int = 0) -> ResponseEnvelope:
    return ResponseEnvelope(
        ok=True,
        command=command,
        result=result,
        metrics=Metrics(duration_ms=duration_ms),
    )


def error_envelope(
    command: str,
    code: str,
    message: str,
    *,
    duration_ms: int = 0,
) -> ResponseEnvelope:
    return ResponseEnvelope(
        ok=False,
        command=command,
        errors=[ErrorDetail(code=code, message=message)],
        metrics=Metrics(duration_ms=duration_ms),
    )


def print_response(envelope: ResponseEnvelope, stream: TextIO | None = None) -> None:
    """Print an envelope as indented JSON (stdout unless a stream is given)."""
    data = envelope.model_dump(mode="json")
    out = stream or sys.stdout
    out.write(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode() + "\n")


def format_value(value: CellValue) -> str:
    if value is None:
        return NO_VALUE
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def output_json(reply: Reply) -> str:
    """Serialize a reply to a single JSON line using orjson."""
    return orjson.dumps(reply.model_dump(mode="json")).decode()


def output_text(reply: Reply) -> str:
    """Render a reply the way a person at a terminal would want to read it."""
    if not reply.ok:
        message = reply.errors[0].message if reply.errors else "unknown error"
        return f"Error: {message}"
    return f"{reply.cell} = {format_value(reply.value)}"


def render_reply(reply: Reply, fmt: str = "json") -> str:
    if fmt == "text":
        return output_text(reply)
    return output_json(reply)


def exit_code_for(response: Union[Reply, ResponseEnvelope]) -> int:
    """Determine exit code from the first error of a reply or envelope."""
    if response.ok:
        return EXIT_CODES["success"]
    if not response.errors:
        return EXIT_CODES["internal"]
    code = response.errors[0].code
    if code in (ERR_COMMAND_FORMAT, ERR_CELL_NAME, ERR_USAGE):
        return EXIT_CODES["command"]
    if code == ERR_EXPRESSION:
        return EXIT_CODES["expression"]
    if code.startswith("ERR_IO"):
        return EXIT_CODES["io"]
    return EXIT_CODES["internal"]


class Dispatcher:
    """Turns one protocol line into one reply against a shared CellStore.

    ``set`` runs in three steps: snapshot the referenced cells under the
    store lock, evaluate with no lock held, then write the result under the
    lock. Only the final write is atomic; two concurrent ``set`` commands can
    both read a stale snapshot before either writes.
    """

    def __init__(self, store: CellStore | None = None, evaluator: Evaluator = evaluate) -> None:
        self.store = store if store is not None else CellStore()
        self.evaluator = evaluator

    def handle(self, line: str) -> Reply:
        with Timer() as t:
            try:
                command = parse_command(line)
                if isinstance(command, GetCommand):
                    reply = self._get(command)
                else:
                    reply = self._set(command)
            except CommandParseError as e:
                reply = error_reply("unknown", e.code, str(e))
            except Exception as e:
                reply = error_reply("unknown", ERR_INTERNAL, str(e))
        reply.metrics.duration_ms = t.elapsed_ms
        return reply

    def _get(self, command: GetCommand) -> Reply:
        return value_reply("get", command.cell, self.store.get(command.cell))

    def _set(self, command: SetCommand) -> Reply:
        variables = resolve_variables(self.store, command.expression)
        try:
            value = self.evaluator(command.expression, variables)
        except EvaluationError as e:
            return error_reply(
                "set", ERR_EXPRESSION, f"{EXPRESSION_ERROR_PREFIX}{e}", cell=command.cell
            )
        self.store.set(command.cell, value)
        return value_reply("set", command.cell, value)
