"""Script runner for ``rsheet run`` — replays a file of protocol lines."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

from rsheet.contracts.common import Reply
from rsheet.engine.dispatcher import Dispatcher
from rsheet.io.fileops import read_text_safe


def load_script(path: str | Path) -> list[str]:
    """Read command lines from a file, skipping blank lines and ``#`` comments."""
    lines: list[str] = []
    for raw in read_text_safe(path).splitlines():
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lines.append(stripped)
    return lines


def execute_script(
    lines: Iterable[str],
    dispatcher: Dispatcher | None = None,
) -> tuple[dict[str, Any], list[Reply]]:
    """Run every line in order against one store.

    Returns the combined result dict and the individual replies.
    """
    dispatcher = dispatcher or Dispatcher()
    replies: list[Reply] = []
    steps: list[dict[str, Any]] = []

    for line in lines:
        reply = dispatcher.handle(line)
        replies.append(reply)
        steps.append({"line": line, **reply.model_dump(mode="json")})

    return {
        "commands_total": len(replies),
        "commands_passed": sum(1 for r in replies if r.ok),
        "ok": all(r.ok for r in replies),
        "replies": steps,
    }, replies
