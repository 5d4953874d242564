"""Find the cells an expression references and snapshot their values."""

from __future__ import annotations

import re

from rsheet.contracts.common import CellValue
from rsheet.engine.parser import CELL_PATTERN
from rsheet.engine.store import CellStore

_REF_RE = re.compile(rf"\b{CELL_PATTERN}\b")


def find_variables(expression: str) -> set[str]:
    """Return every cell identifier token that appears in *expression*."""
    return set(_REF_RE.findall(expression))


def resolve_variables(store: CellStore, expression: str) -> dict[str, CellValue]:
    """Bind each referenced cell to its current value.

    Unset cells are omitted so the evaluator reports them as unknown
    variables. The store lock is released by the time this returns.
    """
    names = find_variables(expression)
    if not names:
        return {}
    return store.snapshot(names)
