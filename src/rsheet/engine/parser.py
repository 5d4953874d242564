"""Command parsing: raw text line -> GetCommand / SetCommand."""

from __future__ import annotations

import re

from rsheet.contracts.common import (
    ERR_CELL_NAME,
    ERR_COMMAND_FORMAT,
    Command,
    CommandParseError,
    GetCommand,
    SetCommand,
)

CELL_PATTERN = r"[A-Z]+[1-9][0-9]*"

_CELL_RE = re.compile(rf"^{CELL_PATTERN}$")
_COMMAND_RE = re.compile(r"^(\S+)\s+(\S+)(?:\s+(.*))?$", re.DOTALL)

INVALID_FORMAT = "invalid command format"
INVALID_CELL = "invalid cell name"


def is_cell_name(token: str) -> bool:
    """True if *token* is a valid cell identifier (e.g. ``A1``, ``BC12``)."""
    return _CELL_RE.match(token) is not None


def parse_command(line: str) -> Command:
    """Parse one protocol line.

    Raises CommandParseError with "invalid command format" or
    "invalid cell name".
    """
    m = _COMMAND_RE.match(line.strip())
    if not m:
        raise CommandParseError(INVALID_FORMAT, ERR_COMMAND_FORMAT)

    keyword, cell, rest = m.group(1), m.group(2), m.group(3)
    if keyword not in ("get", "set"):
        raise CommandParseError(INVALID_FORMAT, ERR_COMMAND_FORMAT)
    if not is_cell_name(cell):
        raise CommandParseError(INVALID_CELL, ERR_CELL_NAME)

    if keyword == "get":
        if rest:
            raise CommandParseError(INVALID_FORMAT, ERR_COMMAND_FORMAT)
        return GetCommand(cell=cell)

    if not rest:
        raise CommandParseError(INVALID_FORMAT, ERR_COMMAND_FORMAT)
    return SetCommand(cell=cell, expression=rest)
