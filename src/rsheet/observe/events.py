"""Command timing, server lifecycle events and command traces."""

from __future__ import annotations

import sys
import time
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

import orjson

from rsheet.contracts.common import Reply


class Timer:
    """Context manager that records elapsed wall time as ``elapsed_ms``."""

    def __init__(self) -> None:
        self.start: float = 0
        self.elapsed_ms: int = 0

    def __enter__(self) -> "Timer":
        self.start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed_ms = int((time.perf_counter() - self.start) * 1000)


def reply_summary(reply: Reply) -> dict[str, Any]:
    """The fields of a reply that events and traces care about."""
    return {
        "command": reply.command,
        "cell": reply.cell,
        "ok": reply.ok,
        "kind": reply.kind,
        "error_code": reply.errors[0].code if reply.errors else None,
        "duration_ms": reply.metrics.duration_ms,
    }


class EventEmitter:
    """Writes server lifecycle events as NDJSON (stderr unless a stream is given).

    Each event carries a sequence number so a consumer can spot gaps when
    the stream is interleaved with other stderr output.
    """

    def __init__(self, enabled: bool = False, stream: TextIO | None = None) -> None:
        self.enabled = enabled
        self.stream = stream
        self.seq = 0

    def emit(self, event: str, data: dict[str, Any] | None = None) -> None:
        if not self.enabled:
            return
        self.seq += 1
        payload = {
            "event": event,
            "seq": self.seq,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data or {},
        }
        out = self.stream or sys.stderr
        out.write(orjson.dumps(payload).decode() + "\n")
        out.flush()

    def command_received(self, line: str) -> None:
        self.emit("command.received", {"line": line})

    def command_replied(self, reply: Reply) -> None:
        self.emit("command.replied", reply_summary(reply))


class TraceRecorder:
    """Collects one entry per handled command and saves them as a JSON trace."""

    def __init__(self) -> None:
        self.entries: list[dict[str, Any]] = []
        self._start = time.perf_counter()

    def record_reply(self, line: str, reply: Reply) -> None:
        self.entries.append({
            "line": line,
            "at_ms": int((time.perf_counter() - self._start) * 1000),
            **reply_summary(reply),
            "value": reply.value,
            "errors": [e.message for e in reply.errors],
        })

    def summary(self) -> dict[str, Any]:
        failures = Counter(e["error_code"] for e in self.entries if not e["ok"])
        written = {e["cell"] for e in self.entries if e["ok"] and e["command"] == "set"}
        return {
            "commands": len(self.entries),
            "failed": sum(failures.values()),
            "failures_by_code": dict(failures),
            "cells_written": sorted(written),
        }

    def save(self, path: str | Path) -> str:
        """Write the trace atomically. Returns the path."""
        from rsheet.io.fileops import write_json

        return write_json(path, {
            "trace_version": "1.0",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "total_duration_ms": int((time.perf_counter() - self._start) * 1000),
            "summary": self.summary(),
            "entries": self.entries,
        })
