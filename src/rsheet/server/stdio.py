"""stdio transport — one command per line on stdin, one reply per line on stdout."""

from __future__ import annotations

import sys
from typing import TextIO

from rsheet.contracts.common import ConnectionClosed, Reply, TransportError
from rsheet.engine.dispatcher import render_reply


class LineReader:
    """Reads newline-framed messages from a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def read_message(self) -> str:
        try:
            line = self.stream.readline()
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise TransportError(f"Read failed: {e}") from e
        if line == "":
            raise ConnectionClosed("End of input")
        return line.rstrip("\r\n")


class LineWriter:
    """Writes one rendered reply per line and flushes it."""

    def __init__(self, stream: TextIO, fmt: str = "json") -> None:
        self.stream = stream
        self.fmt = fmt

    def write_message(self, reply: Reply) -> None:
        try:
            self.stream.write(render_reply(reply, self.fmt) + "\n")
            self.stream.flush()
        except (OSError, ValueError) as e:
            raise TransportError(f"Write failed: {e}") from e


class StdioManager:
    """Hands out the process's stdin/stdout as the one connection."""

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        *,
        fmt: str = "json",
    ) -> None:
        self.stdin = stdin
        self.stdout = stdout
        self.fmt = fmt

    def accept_new_connection(self) -> tuple[LineReader, LineWriter]:
        return (
            LineReader(self.stdin or sys.stdin),
            LineWriter(self.stdout or sys.stdout, self.fmt),
        )
