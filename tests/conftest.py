"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from rsheet.contracts.common import ConnectionClosed, Reply, TransportError
from rsheet.engine.dispatcher import Dispatcher
from rsheet.engine.store import CellStore


class ScriptedReader:
    """Returns queued lines, then ends the connection.

    If ``fail_with`` is set it is raised instead of ConnectionClosed.
    """

    def __init__(self, lines: list[str], fail_with: Exception | None = None) -> None:
        self.lines = list(lines)
        self.fail_with = fail_with
        self.reads = 0

    def read_message(self) -> str:
        self.reads += 1
        if self.lines:
            return self.lines.pop(0)
        if self.fail_with is not None:
            raise self.fail_with
        raise ConnectionClosed("End of input")


class RecordingWriter:
    """Collects every reply; optionally fails after ``fail_after`` writes."""

    def __init__(self, fail_after: int | None = None) -> None:
        self.replies: list[Reply] = []
        self.fail_after = fail_after

    def write_message(self, reply: Reply) -> None:
        if self.fail_after is not None and len(self.replies) >= self.fail_after:
            raise TransportError("Broken pipe")
        self.replies.append(reply)


class FakeManager:
    def __init__(self, reader: ScriptedReader, writer: RecordingWriter) -> None:
        self.reader = reader
        self.writer = writer
        self.accepted = 0

    def accept_new_connection(self) -> tuple[ScriptedReader, RecordingWriter]:
        self.accepted += 1
        return self.reader, self.writer


@pytest.fixture()
def store() -> CellStore:
    return CellStore()


@pytest.fixture()
def dispatcher(store: CellStore) -> Dispatcher:
    return Dispatcher(store)


@pytest.fixture()
def script_file(tmp_path: Path) -> Path:
    """A command script covering values, references, misses and bad input."""
    path = tmp_path / "commands.txt"
    path.write_text(
        "# setup\n"
        "set A1 5\n"
        "set B1 A1 + 1\n"
        "\n"
        "get B1\n"
        "get C1\n"
    )
    return path


@pytest.fixture()
def failing_script_file(tmp_path: Path) -> Path:
    path = tmp_path / "failing.txt"
    path.write_text(
        "set A1 5\n"
        "bogus\n"
        "set B1 Z9 + 1\n"
        "get A1\n"
    )
    return path
