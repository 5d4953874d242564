"""Tests for the command script runner."""

from __future__ import annotations

from pathlib import Path

from rsheet.engine.dispatcher import Dispatcher
from rsheet.engine.script import execute_script, load_script


def test_load_script_skips_comments_and_blanks(script_file: Path):
    assert load_script(script_file) == ["set A1 5", "set B1 A1 + 1", "get B1", "get C1"]


def test_execute_script(script_file: Path):
    result, replies = execute_script(load_script(script_file))
    assert result["ok"] is True
    assert result["commands_total"] == 4
    assert result["commands_passed"] == 4
    assert [r.value for r in replies] == [5, 6, 6, None]


def test_execute_script_continues_after_failure(failing_script_file: Path):
    result, replies = execute_script(load_script(failing_script_file))
    assert result["ok"] is False
    assert result["commands_passed"] == 2
    assert [r.ok for r in replies] == [True, False, False, True]
    assert result["replies"][1]["line"] == "bogus"


def test_execute_script_uses_given_dispatcher():
    d = Dispatcher()
    d.handle("set A1 10")
    _, replies = execute_script(["set A2 A1 * 2"], d)
    assert replies[0].value == 20
    assert d.store.get("A2") == 20
